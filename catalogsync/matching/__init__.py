"""
Catalog matching: similarity scoring, set matching and duplicate detection.
"""

from catalogsync.matching.dedup_index import DedupIndex, candidate_keys
from catalogsync.matching.set_matcher import MatchDecision, MatchPath, SetMatcher
from catalogsync.matching.similarity import edit_distance, normalize_label, similarity

__all__ = [
    "DedupIndex",
    "MatchDecision",
    "MatchPath",
    "SetMatcher",
    "candidate_keys",
    "edit_distance",
    "normalize_label",
    "similarity",
]
