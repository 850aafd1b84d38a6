import logging

import numpy as np
from scipy.fft import rfft, rfftfreq

from .errors import PreconditionError

logger = logging.getLogger(__name__)


def check_finite(x, name):
    ''' Raise if x contains NaN or infinite values.'''
    if not np.all(np.isfinite(x)):
        raise PreconditionError(f"{name} contains non-finite values")


def cross_spectral_density(x, freq_lo, freq_hi, sfreq):
    ''' Cross spectral density of epoched data within a frequency band.

    The spectrum of every trial is computed with a real FFT along the sample
    axis. The outer products of all bins within [freq_lo, freq_hi] are then
    averaged over bins and trials.

    Parameters
    ----------
    x : numpy.ndarray
        Epoched data (samples, trials, sensors).
    freq_lo : float
        Lower edge of the frequency band (Hz), inclusive.
    freq_hi : float
        Upper edge of the frequency band (Hz), inclusive.
    sfreq : float
        The sampling frequency (Hz).

    Return
    ------
    C : numpy.ndarray
        Complex cross spectral density matrix (sensors, sensors).
    '''
    x = np.asarray(x)
    if x.ndim != 3:
        raise PreconditionError(f"Epoched data must be (samples, trials, sensors), got shape {x.shape}")
    if not sfreq > 0:
        raise PreconditionError(f"Sampling frequency must be positive, got {sfreq}")
    if not 0 < freq_lo < freq_hi:
        raise PreconditionError(f"Invalid frequency band [{freq_lo}, {freq_hi}]")
    if freq_hi >= sfreq / 2:
        raise PreconditionError(f"Frequency band [{freq_lo}, {freq_hi}] exceeds the Nyquist frequency {sfreq / 2}")
    check_finite(x, "Epoched data")

    n_samples, n_trials, n_sensors = x.shape
    freqs = rfftfreq(n_samples, d=1 / sfreq)
    idx = np.where((freqs >= freq_lo) & (freqs <= freq_hi))[0]
    if len(idx) == 0:
        msg = (f"{n_samples} samples at {sfreq} Hz (resolution {sfreq / n_samples:.4f} Hz) "
               f"can not resolve the band [{freq_lo}, {freq_hi}]")
        raise PreconditionError(msg)

    X = rfft(x, axis=0)[idx]
    C = np.einsum('fti,ftj->ij', X, X.conj()) / (len(idx) * n_trials)

    logger.debug(f"Cross spectral density of {n_sensors} sensors from {len(idx)} bins "
                 f"({freqs[idx[0]]:.3f}-{freqs[idx[-1]]:.3f} Hz) over {n_trials} trials")
    return C
