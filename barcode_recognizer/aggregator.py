from typing import Iterable, List, Optional

from .models import DecodedCode


def aggregate(
	direct: Optional[DecodedCode],
	region_results: Iterable[DecodedCode] = (),
	heuristic: Optional[DecodedCode] = None,
) -> List[DecodedCode]:
	"""Merge pipeline outputs into one de-duplicated list.

	Order is priority order: whole-image decode, region decodes in region
	order, then the heuristic. The first entry for a given value wins.
	"""
	candidates: List[DecodedCode] = []
	if direct is not None:
		candidates.append(direct)
	candidates.extend(region_results)
	if heuristic is not None:
		candidates.append(heuristic)

	results: List[DecodedCode] = []
	found_values = set()  # Track unique barcode values
	for code in candidates:
		if code.value in found_values:
			continue
		found_values.add(code.value)
		results.append(code)
	return results
