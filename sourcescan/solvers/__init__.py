from .base import regularise, retain_svd, project_subspace, robust_inverse
from .beamformer import (beamformer_lcmv, beamformer_lcmv_csd, beamformer_lcmv_epochs,
                         scan_locations, location_nai)
