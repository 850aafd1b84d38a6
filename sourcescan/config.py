from dataclasses import dataclass, fields, replace
from typing import Callable, Optional

from .errors import PreconditionError


@dataclass(frozen=True)
class LCMVConfig:
    ''' Configuration of a single LCMV scan.

    Parameters
    ----------
    frequency_half_bandwidth : float
        Frequency (Hz) above and below the frequency of interest that is
        included in the cross spectral density. Default is 0.5.
    subspace : float
        Fraction of singular value mass of the signal covariance to retain in
        the subspace projection. 0 or less disables the projection. Default is
        0.95.
    regularisation : float
        Diagonal loading relative to the largest singular value of the
        covariance matrix. 0 disables regularisation. Default is 0.003.
    target_epoch_count : None/int
        Number of epochs to average down to. None keeps all epochs.
    show_progress : bool
        Show a progress bar during the location scan. Default is False.
    n_jobs : int
        Number of threads used for the location scan. -1 uses all cores.
    callback : None/callable
        Called with a dict describing each stage of the computation.
    '''
    frequency_half_bandwidth: float = 0.5
    subspace: float = 0.95
    regularisation: float = 0.003
    target_epoch_count: Optional[int] = None
    show_progress: bool = False
    n_jobs: int = 1
    callback: Optional[Callable[[dict], None]] = None

    def __post_init__(self):
        if not self.frequency_half_bandwidth > 0:
            raise PreconditionError(f"frequency_half_bandwidth must be positive, got {self.frequency_half_bandwidth}")
        if not self.subspace <= 1:
            raise PreconditionError(f"subspace must not exceed 1, got {self.subspace}")
        if not self.regularisation >= 0:
            raise PreconditionError(f"regularisation must be non-negative, got {self.regularisation}")
        if self.target_epoch_count is not None and self.target_epoch_count < 1:
            raise PreconditionError(f"target_epoch_count must be at least 1, got {self.target_epoch_count}")
        if self.n_jobs == 0:
            raise PreconditionError("n_jobs must not be 0")

    def emit(self, stage, **data):
        ''' Forward a stage event to the callback, if any.'''
        if self.callback is not None:
            self.callback(dict(stage=stage, **data))


def make_config(config=None, **kwargs):
    ''' Build the configuration of a scan from an optional base config and
    keyword overrides.

    Parameters
    ----------
    config : None/LCMVConfig
        Base configuration. Defaults are used if None.
    **kwargs
        Overrides for individual fields of the configuration.

    Return
    ------
    config : LCMVConfig
    '''
    if config is None:
        config = LCMVConfig()
    known = {f.name for f in fields(LCMVConfig)}
    unknown = sorted(set(kwargs) - known)
    if unknown:
        msg = f"Unknown configuration options {unknown}. Please choose from: {sorted(known)}"
        raise PreconditionError(msg)
    if kwargs:
        config = replace(config, **kwargs)
    return config
