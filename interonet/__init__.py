"""
InteroNet: Interolog Network Construction and Filtering
"""

from .graph import InteractomeGraph
from .homology import HomologyIndex, UnsupportedVersionError
from .mitab import MitabParseError, MitabRecord, MitabStore
from .pairstore import RankedPairStore, SymmetricPairStore, canonical_pair
from .support import HomologParameter, HomologParameterSet, TaxonMode, TrimCriteria

__version__ = "0.1.0"
__all__ = [
    "InteractomeGraph", "HomologyIndex", "MitabStore", "MitabRecord", "MitabParseError",
    "SymmetricPairStore", "RankedPairStore", "canonical_pair", "HomologParameter",
    "HomologParameterSet", "TrimCriteria", "TaxonMode", "UnsupportedVersionError",
]
