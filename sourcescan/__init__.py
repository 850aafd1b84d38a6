import logging

from .config import LCMVConfig
from .errors import PreconditionError
from .leadfield import Leadfield, match_leadfield
from .simulate import simulate_epochs
from .solvers import beamformer_lcmv, beamformer_lcmv_csd, beamformer_lcmv_epochs
from .spectral import cross_spectral_density
from .util import reduce_epochs
from .volume import VolumeImage

logging.getLogger(__name__).addHandler(logging.NullHandler())
