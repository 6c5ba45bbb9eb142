"""Public package exports for the femtoworld selection and table-production tasks."""

from .collision_selection import CollisionSelector
from .conditions import GRPObject, LocalConditionsDatabase, MagneticFieldCache
from .config import (
    DaughterSelectionConfig,
    EventSelectionConfig,
    MultiplicityConfig,
    PhiSelectionConfig,
    ProducerConfig,
    TrackSelectionConfig,
    V0SelectionConfig,
)
from .dndeta import MultiplicityCounter
from .exceptions import ConditionsError, ConfigurationError, FemtoWorldError, InputFormatError
from .models import (
    AmbiguousTrack,
    BunchCrossing,
    CollisionInput,
    LorentzVector,
    McCollision,
    McParticle,
    ParticleHypothesis,
    TrackInput,
    V0Input,
)
from .phi_selection import KaonPID, PhiLegCuts, PhiSelector
from .producer import CandidateProducer
from .qa import HistogramRegistry
from .records import (
    CollisionRecord,
    DerivedTables,
    ParticleType,
    PhiChildParticle,
    PhiParticle,
    TrackParticle,
    V0ChildParticle,
    V0Particle,
)
from .selection import CutBits, CutContainer, SelectionCriterion, SelectionType
from .track_selection import TrackSelector
from .v0_selection import V0Selector

__all__ = [
    "CandidateProducer",
    "CollisionSelector",
    "TrackSelector",
    "V0Selector",
    "PhiSelector",
    "PhiLegCuts",
    "KaonPID",
    "SelectionCriterion",
    "SelectionType",
    "CutBits",
    "CutContainer",
    "MultiplicityCounter",
    "HistogramRegistry",
    "GRPObject",
    "LocalConditionsDatabase",
    "MagneticFieldCache",
    "ProducerConfig",
    "EventSelectionConfig",
    "TrackSelectionConfig",
    "DaughterSelectionConfig",
    "V0SelectionConfig",
    "PhiSelectionConfig",
    "MultiplicityConfig",
    "TrackInput",
    "V0Input",
    "CollisionInput",
    "AmbiguousTrack",
    "BunchCrossing",
    "McParticle",
    "McCollision",
    "LorentzVector",
    "ParticleHypothesis",
    "CollisionRecord",
    "DerivedTables",
    "ParticleType",
    "TrackParticle",
    "V0ChildParticle",
    "V0Particle",
    "PhiChildParticle",
    "PhiParticle",
    "FemtoWorldError",
    "ConfigurationError",
    "ConditionsError",
    "InputFormatError",
]
