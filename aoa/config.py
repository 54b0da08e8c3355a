"""
Core configuration for Area of Applicability (AOA) estimation
=============================================================
Module-level defaults shared by the dissimilarity index (DI) computation,
the threshold estimation and the raster workflow, plus the per-run
``AOASettings`` that is passed explicitly into every computation.
"""

from dataclasses import dataclass

# ==============================================================================
# Core Configuration (DI + threshold)
# ==============================================================================
# Quantile of the training DI distribution used as AOA threshold
DEFAULT_QUANTILE = 0.95
# Threshold reduction rules: quantile of training DI, or Tukey upper whisker
THRESHOLD_METHODS = ('quantile', 'whisker')
WHISKER_IQR_FACTOR = 1.5
# Minimum usable training points for normalization scale and threshold
MIN_TRAINING_POINTS = 2
RANDOM_STATE = 42  # Fixed seed for reproducibility of model-based importance

# ==============================================================================
# Distance Engine Configuration
# ==============================================================================
# Nearest-neighbour backends: brute force scan, KD tree, or chosen by size
ALGORITHMS = ('auto', 'brute', 'kd_tree')
# Reference set size from which "auto" switches from brute force to a KD tree
INDEX_MIN_POINTS = 256
LEAF_SIZE = 40
# Block of query rows per brute force distance matrix
BRUTE_BLOCK_SIZE = 2048
# Largest training set whose condensed pairwise matrix is built in one go
PDIST_MAX_POINTS = 5000

# ==============================================================================
# Query Domain Processing
# ==============================================================================
CHUNK_SIZE = 100_000  # Query locations per worker task
N_JOBS = 1  # joblib workers (-1 = all cores)

# ==============================================================================
# Output Configuration
# ==============================================================================
AOA_NODATA = 255  # uint8 nodata marker for AOA rasters
OUTPUT_PREFIX = 'AOA'
FOLD_LABEL = 'fold'
CLUSTER_LABEL = 'cluster'


@dataclass(frozen=True)
class AOASettings:
    """
    Per-run options for AOA estimation.

    Parameters
    ----------
    quantile : float
        Quantile of the training DI distribution used as threshold (default: 0.95)
    threshold_method : str
        'quantile' or 'whisker' (Tukey upper whisker of training DI)
    algorithm : str
        Nearest-neighbour backend: 'auto', 'brute' or 'kd_tree'
    leaf_size : int
        Leaf size of the KD tree
    n_jobs : int
        Number of joblib workers used for query DI computation
    chunk_size : int
        Number of query locations per worker task
    compute_lpd : bool
        Also compute the local point density of training data
    progress : bool
        Show a tqdm progress bar over query chunks
    """
    quantile: float = DEFAULT_QUANTILE
    threshold_method: str = 'quantile'
    algorithm: str = 'auto'
    leaf_size: int = LEAF_SIZE
    n_jobs: int = N_JOBS
    chunk_size: int = CHUNK_SIZE
    compute_lpd: bool = False
    progress: bool = False

    def __post_init__(self):
        if not 0.0 <= self.quantile <= 1.0:
            raise ValueError(f"Quantile must lie in [0, 1], got {self.quantile}")
        if self.threshold_method not in THRESHOLD_METHODS:
            raise ValueError(
                f"Unknown threshold method '{self.threshold_method}' - expected one of {THRESHOLD_METHODS}"
            )
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"Unknown algorithm '{self.algorithm}' - expected one of {ALGORITHMS}")
        if self.chunk_size < 1:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")
        if self.leaf_size < 1:
            raise ValueError(f"Leaf size must be positive, got {self.leaf_size}")
