"""
Profile management package.

Provides the profile activation state machine, the shared mod pool,
first-run layout detection and the registry those operate on.
"""

from .registry import ProfileRegistry, SharedModEntry, SharedCollectionEntry
from .registry_store import load_registry, save_registry, load_game_paths, save_game_paths
from .profile_state import ProfileLocations, ProfileState, ProfileStateMachine, ProfileIssue
from .shared_pool import SharedPoolManager, DuplicateCollectionGroup
from .layout_detect import DetectionScenario, DetectionResult, detect_existing_layout
from .profile_manager import ProfileManager, StartupReport

__all__ = ["ProfileRegistry", "SharedModEntry", "SharedCollectionEntry",
           "load_registry", "save_registry", "load_game_paths", "save_game_paths",
           "ProfileLocations", "ProfileState", "ProfileStateMachine", "ProfileIssue",
           "SharedPoolManager", "DuplicateCollectionGroup",
           "DetectionScenario", "DetectionResult", "detect_existing_layout",
           "ProfileManager", "StartupReport"]
