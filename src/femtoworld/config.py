"""Task configuration and the builders turning it into configured selectors.

Every threshold field holds the tiers of one criterion (any order, sorted
loosest first by the selector) or `None` to leave the observable unselected.
The comparison mode of each field is fixed by the tables below.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .collision_selection import K_INT7, CollisionSelector
from .phi_selection import KaonPID, PhiLegCuts, PhiObservable, PhiSelector
from .selection import SelectionType
from .track_selection import TrackObservable, TrackSelector
from .v0_selection import V0Child, V0Observable, V0Selector

Tiers = tuple[float, ...]


@dataclass(frozen=True)
class EventSelectionConfig:
    zvtx_max: float = 10.0
    check_trigger: bool = True
    trigger_sel: int = K_INT7
    check_offline: bool = False
    is_run3: bool = False


@dataclass(frozen=True)
class TrackSelectionConfig:
    """Primary-track selection; defaults give 28 selection and 24 PID bits."""

    charge: Tiers | None = (-1.0, 1.0)
    pt_min: Tiers | None = (0.4, 0.6, 0.5)
    eta_max: Tiers | None = (0.8, 0.7, 0.9)
    tpc_ncls_min: Tiers | None = (80.0, 70.0, 60.0)
    tpc_fcls_min: Tiers | None = (0.7, 0.83, 0.9)
    tpc_crows_min: Tiers | None = (70.0, 60.0, 80.0)
    tpc_scls_max: Tiers | None = (0.1, 160.0)
    its_ncls_min: Tiers | None = (-1.0, 2.0, 4.0)
    its_ncls_ib_min: Tiers | None = (-1.0, 1.0)
    dcaxy_max: Tiers | None = (0.1, 3.5)
    dcaz_max: Tiers | None = (0.2, 3.5)
    dca_min: Tiers | None = None
    tpc_chi2_max: Tiers | None = None
    its_chi2_max: Tiers | None = None
    pid_nsigma_max: Tiers | None = (3.5, 3.0, 2.5)
    pid_species: tuple[str, ...] = ("pi", "ka", "pr", "de")


@dataclass(frozen=True)
class DaughterSelectionConfig:
    """Selection of the daughter tracks of a composite candidate."""

    charge: Tiers | None = (-1.0, 1.0)
    eta_max: Tiers | None = (0.8,)
    tpc_ncls_min: Tiers | None = (80.0, 70.0, 60.0)
    dca_min: Tiers | None = (0.05, 0.06)
    pid_nsigma_max: Tiers | None = (5.0, 4.0)
    pid_species: tuple[str, ...] = ("pi", "pr")


@dataclass(frozen=True)
class V0SelectionConfig:
    sign: Tiers | None = (-1.0, 1.0)
    pt_min: Tiers | None = (0.3, 0.4, 0.5)
    dca_daugh_max: Tiers | None = (1.2, 1.5)
    cpa_min: Tiers | None = (0.99, 0.995)
    tran_rad_min: Tiers | None = (0.2,)
    tran_rad_max: Tiers | None = (100.0,)
    dec_vtx_max: Tiers | None = (100.0,)
    daughters: DaughterSelectionConfig = field(default_factory=DaughterSelectionConfig)
    inv_mass_low: float = 1.005
    inv_mass_high: float = 1.035
    reject_kaons: bool = False
    kaon_inv_mass_low: float = 0.48
    kaon_inv_mass_high: float = 0.515


@dataclass(frozen=True)
class PhiSelectionConfig:
    """Phi -> K+K- production.

    `leg_selection` configures the leg cut containers; with
    `require_selection_bits` the candidate is also required to pass the
    composite acceptance of its cut container.
    """

    pt_min: Tiers | None = (0.3, 0.4, 0.5)
    eta_max: Tiers | None = None
    first_leg: PhiLegCuts = field(default_factory=PhiLegCuts)
    second_leg: PhiLegCuts = field(default_factory=PhiLegCuts)
    kaon_pid: KaonPID = field(default_factory=KaonPID)
    inv_mass_low: float = 1.005
    inv_mass_high: float = 1.035
    leg_selection: DaughterSelectionConfig | None = None
    require_selection_bits: bool = False


@dataclass(frozen=True)
class ProducerConfig:
    event: EventSelectionConfig = field(default_factory=EventSelectionConfig)
    track: TrackSelectionConfig = field(default_factory=TrackSelectionConfig)
    v0: V0SelectionConfig = field(default_factory=V0SelectionConfig)
    phi: PhiSelectionConfig = field(default_factory=PhiSelectionConfig)
    store_all_events: bool = False
    store_v0: bool = True
    store_phi: bool = True
    # Only applied to V0 daughters; primary tracks are kept either way.
    reject_not_propagated: bool = False


@dataclass(frozen=True)
class MultiplicityConfig:
    use_event_selection: bool = True
    estimator_eta: float = 1.0
    z_bins: tuple[int, float, float] = (60, -30.0, 30.0)
    eta_bins: tuple[int, float, float] = (80, -4.0, 4.0)
    centrality_edges: tuple[float, ...] = (0.0, 20.0, 60.0, 90.0, 100.0)
    default_centrality: float = 50.0
    # Global-track DCA gates on counted tracks and best-collision DCA on reassigned ones.
    apply_dca_cuts: bool = True
    dcaz_max: float = 2.0


_TRACK_CRITERIA: tuple[tuple[str, TrackObservable, SelectionType], ...] = (
    ("charge", TrackObservable.SIGN, SelectionType.EQUAL),
    ("pt_min", TrackObservable.PT_MIN, SelectionType.LOWER_LIMIT),
    ("eta_max", TrackObservable.ETA_MAX, SelectionType.ABS_UPPER_LIMIT),
    ("tpc_ncls_min", TrackObservable.TPC_NCLS_MIN, SelectionType.LOWER_LIMIT),
    ("tpc_fcls_min", TrackObservable.TPC_FCLS_MIN, SelectionType.LOWER_LIMIT),
    ("tpc_crows_min", TrackObservable.TPC_CROWS_MIN, SelectionType.LOWER_LIMIT),
    ("tpc_scls_max", TrackObservable.TPC_SCLS_MAX, SelectionType.UPPER_LIMIT),
    ("its_ncls_min", TrackObservable.ITS_NCLS_MIN, SelectionType.LOWER_LIMIT),
    ("its_ncls_ib_min", TrackObservable.ITS_NCLS_IB_MIN, SelectionType.LOWER_LIMIT),
    ("dcaxy_max", TrackObservable.DCAXY_MAX, SelectionType.ABS_UPPER_LIMIT),
    ("dcaz_max", TrackObservable.DCAZ_MAX, SelectionType.ABS_UPPER_LIMIT),
    ("dca_min", TrackObservable.DCA_MIN, SelectionType.ABS_LOWER_LIMIT),
    ("tpc_chi2_max", TrackObservable.TPC_CHI2_MAX, SelectionType.UPPER_LIMIT),
    ("its_chi2_max", TrackObservable.ITS_CHI2_MAX, SelectionType.UPPER_LIMIT),
    ("pid_nsigma_max", TrackObservable.PID_NSIGMA_MAX, SelectionType.ABS_UPPER_LIMIT),
)

_V0_CRITERIA: tuple[tuple[str, V0Observable, SelectionType], ...] = (
    ("sign", V0Observable.V0_SIGN, SelectionType.EQUAL),
    ("pt_min", V0Observable.PT_V0_MIN, SelectionType.LOWER_LIMIT),
    ("dca_daugh_max", V0Observable.DCA_V0_DAUGH_MAX, SelectionType.UPPER_LIMIT),
    ("cpa_min", V0Observable.CPA_V0_MIN, SelectionType.LOWER_LIMIT),
    ("tran_rad_min", V0Observable.TRAN_RAD_V0_MIN, SelectionType.LOWER_LIMIT),
    ("tran_rad_max", V0Observable.TRAN_RAD_V0_MAX, SelectionType.UPPER_LIMIT),
    ("dec_vtx_max", V0Observable.DEC_VTX_MAX, SelectionType.UPPER_LIMIT),
)

_PHI_CRITERIA: tuple[tuple[str, PhiObservable, SelectionType], ...] = (
    ("pt_min", PhiObservable.PT_PHI_MIN, SelectionType.LOWER_LIMIT),
    ("eta_max", PhiObservable.ETA_PHI_MAX, SelectionType.ABS_UPPER_LIMIT),
)


def build_collision_selector(config: EventSelectionConfig) -> CollisionSelector:
    return CollisionSelector(
        zvtx_max=config.zvtx_max,
        check_trigger=config.check_trigger,
        trigger_sel=config.trigger_sel,
        check_offline=config.check_offline,
        is_run3=config.is_run3,
    )


def configure_track_selector(
    selector: TrackSelector,
    config: TrackSelectionConfig | DaughterSelectionConfig,
    reject_not_propagated: bool = False,
) -> TrackSelector:
    """Apply every configured track criterion (fields absent from `config` are skipped)."""
    for name, observable, mode in _TRACK_CRITERIA:
        thresholds = getattr(config, name, None)
        if thresholds is not None:
            selector.set_selection(thresholds, observable, mode)
    selector.set_pid_species(config.pid_species)
    selector.reject_not_propagated = reject_not_propagated
    return selector


def build_track_selector(
    config: TrackSelectionConfig, reject_not_propagated: bool = False
) -> TrackSelector:
    return configure_track_selector(TrackSelector(), config, reject_not_propagated)


def build_v0_selector(config: V0SelectionConfig, reject_not_propagated: bool = False) -> V0Selector:
    selector = V0Selector()
    for name, observable, mode in _V0_CRITERIA:
        thresholds = getattr(config, name)
        if thresholds is not None:
            selector.set_selection(thresholds, observable, mode)
    for child in V0Child:
        configure_track_selector(selector.children[child], config.daughters, reject_not_propagated)
    selector.set_inv_mass_limits(config.inv_mass_low, config.inv_mass_high)
    if config.reject_kaons:
        selector.set_kaon_inv_mass_limits(config.kaon_inv_mass_low, config.kaon_inv_mass_high)
    return selector


def build_phi_selector(config: PhiSelectionConfig) -> PhiSelector:
    selector = PhiSelector(legs=(config.first_leg, config.second_leg), kaon_pid=config.kaon_pid)
    for name, observable, mode in _PHI_CRITERIA:
        thresholds = getattr(config, name)
        if thresholds is not None:
            selector.set_selection(thresholds, observable, mode)
    if config.leg_selection is not None:
        for child in selector.children:
            configure_track_selector(child, config.leg_selection)
    selector.set_inv_mass_limits(config.inv_mass_low, config.inv_mass_high)
    return selector
