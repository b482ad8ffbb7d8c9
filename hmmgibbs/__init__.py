"""hmmgibbs - Viterbi decoding and FFBS Gibbs sampling for discrete-state HMMs."""

__version__ = "0.1.0"

from .config import SamplerConfig
from .diagnostics import (
    autocorrelation,
    concatenate_chains,
    discard_burn_in,
    effective_sample_size,
    gelman_rubin,
    ljung_box,
    postprocess,
    select_thinning,
    state_probability,
    thin,
    trace_autocorrelation,
)
from .emissions import CategoricalEmission, EmissionModel, GaussianEmission
from .exceptions import (
    ConfigurationError,
    DegenerateClusterError,
    HMMError,
    InvalidParameterError,
    NumericalUnderflowError,
)
from .gibbs import (
    GibbsChain,
    GibbsResult,
    GibbsSampler,
    gibbs_update,
    overdispersed_starts,
    state_counts,
    transition_counts,
)
from .hmm import HiddenMarkovModel
from .inference import ForwardLattice, backward, backward_sample, forward, smooth, viterbi
from .logging import configure_logging, get_logger, set_log_level
from .params import HMMParams
from .trace import ChainTrace
from .utils import logsumexp, normalize_log_weights, sample_categorical, sample_dirichlet

__all__ = [
    "__version__",
    # Configuration
    "SamplerConfig",
    # Errors
    "HMMError",
    "InvalidParameterError",
    "NumericalUnderflowError",
    "DegenerateClusterError",
    "ConfigurationError",
    # Emissions
    "EmissionModel",
    "GaussianEmission",
    "CategoricalEmission",
    # Model
    "HMMParams",
    "HiddenMarkovModel",
    # Inference
    "ForwardLattice",
    "viterbi",
    "forward",
    "backward",
    "smooth",
    "backward_sample",
    # Gibbs sampling
    "GibbsChain",
    "GibbsSampler",
    "GibbsResult",
    "ChainTrace",
    "gibbs_update",
    "transition_counts",
    "state_counts",
    "overdispersed_starts",
    # Diagnostics
    "discard_burn_in",
    "concatenate_chains",
    "thin",
    "autocorrelation",
    "trace_autocorrelation",
    "select_thinning",
    "postprocess",
    "state_probability",
    "gelman_rubin",
    "effective_sample_size",
    "ljung_box",
    # Utilities
    "logsumexp",
    "normalize_log_weights",
    "sample_categorical",
    "sample_dirichlet",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
]
