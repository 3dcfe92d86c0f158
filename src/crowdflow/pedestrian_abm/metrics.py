"""Crowd analysis metrics: lanes, speed waves, compression and turbulence.

Every function here only reads pedestrian state. Grid and kernel defaults
come from `config.METRICS_DEFAULTS`.

- band index (lane segregation in counter-flow)
- local speed field, space-time history and its correlation (stop-and-go waves)
- body compression, compression field and crowd pressure (density x velocity variance)
- stop-to-stop displacement distribution with a power-law fit
- `MetricsRecorder`, a step hook collecting `Simulation.get_metrics()` rows
"""
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd
from scipy import stats
from scipy.spatial import cKDTree

from crowdflow.pedestrian_abm.config import METRICS_DEFAULTS, NUMERICS
from crowdflow.pedestrian_abm.entities import Pedestrian, active_only
from crowdflow.pedestrian_abm.geometry import gaussian, periodic_displacement

logger = logging.getLogger(__name__)

_EPS = NUMERICS['eps']


def _axis(lo: float, hi: float, step: float) -> np.ndarray:
    """Samples lo, lo + step, ... up to and including hi."""
    n = int(np.floor((hi - lo) / step + 1e-9)) + 1
    return lo + np.arange(n, dtype=float) * step


def _active_arrays(pedestrians: Sequence[Pedestrian]):
    active = active_only(pedestrians)
    positions = np.array([p.position for p in active], dtype=float).reshape(-1, 2)
    velocities = np.array([p.velocity for p in active], dtype=float).reshape(-1, 2)
    radii = np.array([p.radius for p in active], dtype=float)
    return active, positions, velocities, radii


# ── lane formation ────────────────────────────────────────────────────────
def compute_band_index(pedestrians: Sequence[Pedestrian], bounds,
                       band_width: float = METRICS_DEFAULTS['band_width'],
                       step_size: float = METRICS_DEFAULTS['band_step']) -> float:
    """Mean over horizontal bands of |n+ - n-| / (n+ + n-).

    1 means fully segregated lanes, 0 fully mixed. Bands with nobody in
    them are skipped; fewer than two active pedestrians give 0.
    """
    active = active_only(pedestrians)
    if len(active) < 2:
        return 0.0
    y = np.array([p.position[1] for p in active], dtype=float)
    forward = np.array([p.direction > 0 for p in active], dtype=bool)

    values = []
    for y0 in _axis(bounds.y_min, bounds.y_max - band_width, step_size):
        in_band = (y >= y0) & (y < y0 + band_width)
        total = int(in_band.sum())
        if total == 0:
            continue
        n_plus = int((in_band & forward).sum())
        values.append(abs(2 * n_plus - total) / total)
    return float(np.mean(values)) if values else 0.0


class BandIndexTracker:
    """Bounded (time, band index) history."""

    def __init__(self, max_history: int = METRICS_DEFAULTS['history_length']):
        self._history = deque(maxlen=max_history)

    def record(self, time: float, value: float) -> None:
        self._history.append((float(time), float(value)))

    def history(self) -> List[Tuple[float, float]]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def average(self) -> float:
        if not self._history:
            return 0.0
        return float(np.mean([v for _, v in self._history]))

    def __len__(self):
        return len(self._history)


# ── speed waves ───────────────────────────────────────────────────────────
@dataclass(frozen=True)
class LocalSpeedField:
    x: np.ndarray
    values: np.ndarray


def compute_local_speed_field(pedestrians: Sequence[Pedestrian], bounds,
                              resolution: float = METRICS_DEFAULTS['speed_resolution'],
                              R: float = METRICS_DEFAULTS['speed_kernel']) -> LocalSpeedField:
    """Gaussian-weighted mean speed V(x) along the street axis."""
    xs = _axis(bounds.x_min, bounds.x_max, resolution)
    _, positions, velocities, _ = _active_arrays(pedestrians)
    if positions.shape[0] == 0:
        return LocalSpeedField(x=xs, values=np.zeros_like(xs))
    speeds = np.hypot(velocities[:, 0], velocities[:, 1])
    weights = gaussian(np.abs(positions[None, :, 0] - xs[:, None]), R)
    total = weights.sum(axis=1)
    weighted = weights @ speeds
    values = np.where(total > _EPS, weighted / np.where(total > _EPS, total, 1.0), 0.0)
    return LocalSpeedField(x=xs, values=values)


def compute_average_speed(pedestrians: Sequence[Pedestrian]) -> float:
    _, _, velocities, _ = _active_arrays(pedestrians)
    if velocities.shape[0] == 0:
        return 0.0
    return float(np.hypot(velocities[:, 0], velocities[:, 1]).mean())


class SpaceTimeTracker:
    """Bounded history of (time, LocalSpeedField) for space-time diagrams."""

    def __init__(self, max_history: int = METRICS_DEFAULTS['space_time_length']):
        self._data = deque(maxlen=max_history)

    def record(self, time: float, field: LocalSpeedField) -> None:
        self._data.append((float(time), field))

    def data(self) -> List[Tuple[float, LocalSpeedField]]:
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()

    def to_array(self) -> np.ndarray:
        """(T, X) matrix of speeds; empty when nothing has been recorded."""
        if not self._data:
            return np.zeros((0, 0), dtype=float)
        return np.vstack([f.values for _, f in self._data])

    def __len__(self):
        return len(self._data)


def compute_speed_correlation(history: Sequence[Tuple[float, LocalSpeedField]], X: float, T: float,
                              time_tolerance: float = 0.1, space_tolerance: float = 0.3) -> float:
    """Pearson correlation between V(x, t) and V(x - X, t + T).

    Returns 0 with fewer than 10 matched pairs or a degenerate variance.
    """
    if len(history) < 2:
        return 0.0
    times = np.array([t for t, _ in history], dtype=float)
    v1: List[float] = []
    v2: List[float] = []
    for t1, field1 in history:
        matches = np.flatnonzero(np.abs(times - (t1 + T)) < time_tolerance)
        if matches.size == 0:
            continue
        field2 = history[int(matches[0])][1]
        gaps = np.abs(field2.x[None, :] - (field1.x[:, None] - X))
        closest = gaps.argmin(axis=1)
        ok = gaps[np.arange(closest.size), closest] < space_tolerance
        v1.extend(field1.values[ok])
        v2.extend(field2.values[closest[ok]])

    if len(v1) < 10:
        return 0.0
    a = np.asarray(v1, dtype=float)
    b = np.asarray(v2, dtype=float)
    da = a - a.mean()
    db = b - b.mean()
    den = np.sqrt((da * da).sum() * (db * db).sum())
    if den <= _EPS:
        return 0.0
    return float((da * db).sum() / den)


# ── compression and pressure ──────────────────────────────────────────────
def compute_body_compressions(pedestrians: Sequence[Pedestrian], bounds=None, periodic: bool = False) -> np.ndarray:
    """Summed overlap with touching neighbors for every active pedestrian.

    Contacts are found with a KD-tree; under periodic boundaries the tree
    is built on the torus (`boxsize`).
    """
    _, positions, _, radii = _active_arrays(pedestrians)
    n = positions.shape[0]
    out = np.zeros(n, dtype=float)
    if n < 2:
        return out
    reach = 2.0 * float(radii.max())
    if periodic and bounds is not None:
        origin = np.array([bounds.x_min, bounds.y_min], dtype=float)
        box = np.array([bounds.width, bounds.height], dtype=float)
        wrapped = np.mod(positions - origin, box)
        # mod of a tiny negative can round up to the box edge
        wrapped = np.where(wrapped >= box, 0.0, wrapped)
        tree = cKDTree(wrapped, boxsize=box)
    else:
        tree = cKDTree(positions)
    pairs = tree.query_pairs(r=reach, output_type='ndarray')
    if pairs.size == 0:
        return out
    i, j = pairs[:, 0], pairs[:, 1]
    if periodic and bounds is not None:
        delta = periodic_displacement(positions[i], positions[j], bounds)
    else:
        delta = positions[j] - positions[i]
    overlap = radii[i] + radii[j] - np.hypot(delta[:, 0], delta[:, 1])
    overlap = np.where(overlap > 0.0, overlap, 0.0)
    np.add.at(out, i, overlap)
    np.add.at(out, j, overlap)
    return out


def compute_body_compression(pedestrian: Pedestrian, others: Sequence[Pedestrian], bounds=None,
                             periodic: bool = False) -> float:
    """Summed overlap of `pedestrian` with every other active pedestrian."""
    visible = [o for o in others if o.active and o.id != pedestrian.id]
    if not visible:
        return 0.0
    positions = np.array([o.position for o in visible], dtype=float)
    radii = np.array([o.radius for o in visible], dtype=float)
    if periodic and bounds is not None:
        delta = periodic_displacement(pedestrian.position, positions, bounds)
    else:
        delta = positions - pedestrian.position
    overlap = pedestrian.radius + radii - np.hypot(delta[:, 0], delta[:, 1])
    return float(overlap[overlap > 0.0].sum())


@dataclass(frozen=True)
class ScalarField:
    """values[i, j] sampled at (x[i], y[j])."""
    x: np.ndarray
    y: np.ndarray
    values: np.ndarray


def _grid_weights(positions: np.ndarray, bounds, resolution: float, R: float, periodic: bool):
    xs = _axis(bounds.x_min, bounds.x_max, resolution)
    ys = _axis(bounds.y_min, bounds.y_max, resolution)
    gx, gy = np.meshgrid(xs, ys, indexing='ij')
    points = np.column_stack([gx.ravel(), gy.ravel()])
    delta = positions[None, :, :] - points[:, None, :]
    if periodic:
        span = np.array([bounds.width, bounds.height], dtype=float)
        delta = delta - np.round(delta / span) * span
    dist = np.hypot(delta[..., 0], delta[..., 1])
    return xs, ys, gaussian(dist, R)


def compute_compression_field(pedestrians: Sequence[Pedestrian], bounds,
                              resolution: float = METRICS_DEFAULTS['field_resolution'],
                              R: float = METRICS_DEFAULTS['field_kernel'],
                              periodic: bool = False) -> ScalarField:
    """Gaussian-weighted mean body compression C(x, y) on a regular grid."""
    _, positions, _, _ = _active_arrays(pedestrians)
    xs = _axis(bounds.x_min, bounds.x_max, resolution)
    ys = _axis(bounds.y_min, bounds.y_max, resolution)
    if positions.shape[0] == 0:
        return ScalarField(x=xs, y=ys, values=np.zeros((xs.size, ys.size)))
    compression = compute_body_compressions(pedestrians, bounds, periodic)
    xs, ys, weights = _grid_weights(positions, bounds, resolution, R, periodic)
    total = weights.sum(axis=1)
    values = np.where(total > _EPS, (weights @ compression) / np.where(total > _EPS, total, 1.0), 0.0)
    return ScalarField(x=xs, y=ys, values=values.reshape(xs.size, ys.size))


def compute_crowd_pressure(pedestrians: Sequence[Pedestrian], bounds,
                           resolution: float = METRICS_DEFAULTS['field_resolution'],
                           R: float = METRICS_DEFAULTS['field_kernel'],
                           periodic: bool = False) -> ScalarField:
    """P(x, y) = local density x local velocity variance.

    Density is the summed kernel weight; variance is Var(vx) + Var(vy)
    under the same weights.
    """
    _, positions, velocities, _ = _active_arrays(pedestrians)
    xs = _axis(bounds.x_min, bounds.x_max, resolution)
    ys = _axis(bounds.y_min, bounds.y_max, resolution)
    if positions.shape[0] == 0:
        return ScalarField(x=xs, y=ys, values=np.zeros((xs.size, ys.size)))
    xs, ys, weights = _grid_weights(positions, bounds, resolution, R, periodic)
    total = weights.sum(axis=1)
    safe = np.where(total > _EPS, total, 1.0)
    mean_v = (weights @ velocities) / safe[:, None]
    mean_v2 = (weights @ (velocities * velocities)) / safe[:, None]
    variance = (mean_v2 - mean_v * mean_v).sum(axis=1)
    values = np.where(total > _EPS, total * variance, 0.0)
    return ScalarField(x=xs, y=ys, values=values.reshape(xs.size, ys.size))


# ── turbulence ────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PowerLawFit:
    exponent: float
    r_squared: float


class DisplacementTracker:
    """Collects distances walked between consecutive stops.

    A pedestrian is stopped while its speed is below `stop_threshold`. On
    each moving -> stopped transition the distance from the previous stop
    is recorded when it exceeds `min_displacement`.
    """

    def __init__(self, stop_threshold: float = METRICS_DEFAULTS['stop_threshold'],
                 min_displacement: float = METRICS_DEFAULTS['min_displacement']):
        self.stop_threshold = stop_threshold
        self.min_displacement = min_displacement
        self._last_stop: Dict[int, Optional[np.ndarray]] = {}
        self._stopped: Dict[int, bool] = {}
        self._displacements: List[float] = []

    def update(self, pedestrians: Sequence[Pedestrian]) -> None:
        for ped in pedestrians:
            if not ped.active:
                continue
            stopped = ped.speed < self.stop_threshold
            if stopped and not self._stopped.get(ped.id, False):
                last = self._last_stop.get(ped.id)
                if last is not None:
                    d = float(np.hypot(*(ped.position - last)))
                    if d > self.min_displacement:
                        self._displacements.append(d)
                self._last_stop[ped.id] = ped.position.copy()
            self._stopped[ped.id] = stopped

    def __call__(self, sim) -> None:
        self.update(sim.pedestrians)

    @property
    def displacements(self) -> List[float]:
        return list(self._displacements)

    def clear(self) -> None:
        self._last_stop.clear()
        self._stopped.clear()
        self._displacements = []

    def histogram(self, bin_width: float = 0.1, max_displacement: float = 2.0) -> Tuple[np.ndarray, np.ndarray]:
        """(bin centers, counts); displacements beyond the range land in the last bin."""
        n_bins = int(np.ceil(max_displacement / bin_width - 1e-9))
        centers = np.arange(n_bins, dtype=float) * bin_width + bin_width / 2.0
        counts = np.zeros(n_bins, dtype=int)
        if self._displacements:
            idx = np.minimum(n_bins - 1, np.floor(np.asarray(self._displacements) / bin_width).astype(int))
            np.add.at(counts, idx, 1)
        return centers, counts

    def fit_power_law(self) -> PowerLawFit:
        """Fit P(d) ~ d^-alpha by linear regression of log counts on log bin centers."""
        if len(self._displacements) < 10:
            return PowerLawFit(exponent=0.0, r_squared=0.0)
        centers, counts = self.histogram()
        keep = counts > 0
        if keep.sum() < 3:
            return PowerLawFit(exponent=0.0, r_squared=0.0)
        fit = stats.linregress(np.log(centers[keep]), np.log(counts[keep]))
        r_squared = float(fit.rvalue ** 2) if np.isfinite(fit.rvalue) else 0.0
        return PowerLawFit(exponent=float(-fit.slope), r_squared=r_squared)


# ── recording ─────────────────────────────────────────────────────────────
class MetricsRecorder:
    """Step hook sampling `sim.get_metrics()` every `every` steps.

    Usage:
        recorder = MetricsRecorder(every=50)
        sim.on_step(recorder)
        sim.step_n(1000)
        frame = recorder.to_frame()
    """

    def __init__(self, every: int = 1):
        if every < 1:
            raise ValueError(f'every must be >= 1, got {every}')
        self.every = int(every)
        self.rows: List[Dict[str, object]] = []

    def record(self, sim) -> None:
        row = sim.get_metrics().as_dict()
        row['step'] = sim.step_count
        self.rows.append(row)

    def __call__(self, sim) -> None:
        if sim.step_count % self.every == 0:
            self.record(sim)

    def clear(self) -> None:
        self.rows = []

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.rows)
        if not frame.empty:
            frame = frame.set_index('step')
        return frame
