RANDOM_SEED = 42  # Reproducibility for all random operations

# Optimization loop defaults
N_INITIAL = 10
N_ITERATIONS = 20
BATCH_SIZE = 1
MAX_FIT_RETRIES = 3  # Perturb-and-refit attempts before giving up
MAX_PERTURB_ATTEMPTS = 10  # Per duplicate candidate
PERTURB_SCALE = 0.05  # Std. dev. of duplicate perturbation in unit space
FIT_PERTURB_SCALE = 1e-3  # Nudge applied to a training input when the fit fails

# Two unit-space vectors closer than this (max-norm) are the same point
DUPLICATE_TOLERANCE = 1e-6

# Acquisition defaults
ACQUISITION = "ucb"
KAPPA = 2.576  # 99% two-sided confidence
XI = 0.0

# Acquisition optimizer defaults
RAW_SAMPLES = 512  # Latin hypercube points scored before local search
N_LOCAL_STARTS = 10
N_RANDOM_STARTS = 2  # Extra starts drawn at random, not from the best raw points

# Gaussian process defaults
KERNEL = "matern52"
NOISE = 1e-6  # Observation noise variance on the standardized scale
NOISE_BOUNDS = (1e-8, 1e-1)
LENGTH_SCALE = 0.5
LENGTH_SCALE_BOUNDS = (1e-2, 1e2)
SIGNAL_VARIANCE = 1.0
SIGNAL_VARIANCE_BOUNDS = (1e-2, 1e2)
N_RESTARTS = 5  # Marginal likelihood restarts
JITTER = 1e-10
MAX_JITTER = 1e-2
