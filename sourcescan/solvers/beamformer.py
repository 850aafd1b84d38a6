import logging

import mne
import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from ..config import make_config
from ..errors import PreconditionError
from ..leadfield import match_leadfield
from ..spectral import check_finite, cross_spectral_density
from ..util import reduce_epochs
from ..volume import VolumeImage
from .base import project_subspace, regularise, retain_svd, robust_inverse

logger = logging.getLogger(__name__)


def beamformer_lcmv(x, n, H, sfreq, foi, config=None, **kwargs):
    ''' Linearly constrained minimum variance (LCMV) beamformer for epoched
    data [1]. Returns the source variance, noise variance and neural
    activity index (NAI) of each location. Source space projection is
    implemented following [2].

    Parameters
    ----------
    x : numpy.ndarray
        Signal condition (samples, trials, sensors).
    n : numpy.ndarray
        Noise condition (samples, trials, sensors).
    H : numpy.ndarray
        Forward model (locations, dimensions, sensors).
    sfreq : float
        The sampling frequency (Hz).
    foi : float
        Frequency of interest for the cross spectral density (Hz).
    config : None/LCMVConfig
        Configuration of the scan. Keyword arguments override its fields.

    Return
    ------
    variance : numpy.ndarray
        Source variance per location (locations,).
    noise : numpy.ndarray
        Noise variance per location (locations,).
    nai : numpy.ndarray
        Neural activity index per location (locations,).

    References
    ----------
    [1] Van Veen, B. D., van Drongelen, W., Yuchtman, M., & Suzuki, A. (1997).
    Localization of brain electrical activity via linearly constrained
    minimum variance spatial filtering. IEEE Transactions on Biomedical
    Engineering, 44(9), 867-880.
    [2] Sekihara, K., Nagarajan, S. S., Poeppel, D., Marantz, A., & Miyashita,
    Y. (2001). Reconstructing spatio-temporal activities of neural sources
    using an MEG vector beamformer technique. IEEE Transactions on Biomedical
    Engineering, 48(7), 760-771.
    '''
    config = make_config(config, **kwargs)
    x = np.asarray(x)
    n = np.asarray(n)
    H = np.asarray(H)

    for name, arr in (("Signal", x), ("Noise", n), ("Forward model", H)):
        if arr.ndim != 3:
            raise PreconditionError(f"{name} must be a 3D array, got shape {arr.shape}")

    n_samples, _, n_sensors = x.shape
    n_locations, n_dims, _ = H.shape
    if n.shape[2] != n_sensors:
        raise PreconditionError(f"Signal has {n_sensors} sensors but noise has {n.shape[2]}")
    if H.shape[2] != n_sensors:
        raise PreconditionError(f"Signal has {n_sensors} sensors but the forward model has {H.shape[2]}")
    if n_samples <= n_sensors or n.shape[0] <= n_sensors:
        raise PreconditionError(f"Need more samples than sensors, got {n_samples} and {n.shape[0]} samples for {n_sensors} sensors")
    check_finite(x, "Signal")
    check_finite(n, "Noise")
    check_finite(H, "Forward model")

    if config.target_epoch_count is not None:
        if config.target_epoch_count < x.shape[1]:
            x = reduce_epochs(x, config.target_epoch_count)
        if config.target_epoch_count < n.shape[1]:
            n = reduce_epochs(n, config.target_epoch_count)

    logger.debug(f"LCMV epoch beamformer using {n_samples} samples on {n_sensors} sensors "
                 f"for {n_locations} sources over {n_dims} dimensions")

    freq_lo = foi - config.frequency_half_bandwidth
    freq_hi = foi + config.frequency_half_bandwidth
    C = cross_spectral_density(x, freq_lo, freq_hi, sfreq)
    Q = cross_spectral_density(n, freq_lo, freq_hi, sfreq)

    if np.array_equal(C, Q):
        raise PreconditionError("Signal and noise have identical cross spectral densities")

    return beamformer_lcmv_csd(C, Q, H, config=config)


def beamformer_lcmv_csd(C, Q, H, config=None, **kwargs):
    ''' LCMV beamformer from precomputed cross spectral densities.

    Parameters
    ----------
    C : numpy.ndarray
        Cross spectral density of the signal condition (sensors, sensors).
    Q : numpy.ndarray
        Cross spectral density of the noise condition (sensors, sensors).
    H : numpy.ndarray
        Forward model (locations, dimensions, sensors).
    config : None/LCMVConfig
        Configuration of the scan. Keyword arguments override its fields.

    Return
    ------
    variance, noise, nai : numpy.ndarray
        Source variance, noise variance and neural activity index per
        location.
    '''
    config = make_config(config, **kwargs)
    C = np.asarray(C)
    Q = np.asarray(Q)
    H = np.asarray(H)
    n_sensors = C.shape[0]
    if C.shape != (n_sensors, n_sensors) or Q.shape != C.shape:
        raise PreconditionError(f"Signal and noise matrices must be square and of equal size, got {C.shape} and {Q.shape}")
    if H.ndim != 3 or H.shape[2] != n_sensors:
        raise PreconditionError(f"Forward model of shape {H.shape} does not match {n_sensors} sensors")
    check_finite(C, "Signal matrix")
    check_finite(Q, "Noise matrix")
    check_finite(H, "Forward model")

    logger.debug("Computing LCMV beamformer from cross spectral densities")

    # Default as suggested in discussion of Sekihara et al. (2001)
    C = regularise(C, config.regularisation)
    Q = regularise(Q, config.regularisation)
    config.emit("regularise", regularisation=config.regularisation)

    basis, retained = retain_svd(np.real(C), config.subspace)
    if config.subspace > 0:
        C = project_subspace(basis, C)
        Q = project_subspace(basis, Q)
        logger.debug(f"Subspace constructed of {basis.shape[0]} components constituting {100*retained:.3f}% of power")
    config.emit("subspace", rank=basis.shape[0], retained=retained)

    # Compute inverse outside loop
    invC = robust_inverse(C)
    invQ = robust_inverse(Q)
    config.emit("inverse")

    variance, noise, nai = scan_locations(invC, invQ, H, basis, config)
    config.emit("done", n_locations=len(nai))
    return variance, noise, nai


def scan_locations(invC, invQ, H, basis, config):
    ''' Evaluate the beamformer at every location of the forward model.

    Parameters
    ----------
    invC : numpy.ndarray
        Inverse of the (projected) signal matrix (rank, rank).
    invQ : numpy.ndarray
        Inverse of the (projected) noise matrix (rank, rank).
    H : numpy.ndarray
        Forward model (locations, dimensions, sensors).
    basis : numpy.ndarray
        Subspace basis (rank, sensors).
    config : LCMVConfig
        Configuration of the scan.

    Return
    ------
    variance, noise, nai : numpy.ndarray
    '''
    n_locations = H.shape[0]
    variance = np.zeros(n_locations)
    noise = np.zeros(n_locations)
    nai = np.zeros(n_locations)

    # Shared between workers
    invC = invC.view()
    invQ = invQ.view()
    invC.flags.writeable = False
    invQ.flags.writeable = False

    logger.debug("Beamformer scan started")
    parallel = Parallel(n_jobs=config.n_jobs, prefer="threads", return_as="generator")
    results = parallel(delayed(location_nai)(invC, invQ, basis @ H[l].T) for l in range(n_locations))
    progress = tqdm(results, total=n_locations, desc="LCMV scan", disable=not config.show_progress)
    for l, result in enumerate(progress):
        variance[l], noise[l], nai[l] = result
        config.emit("scan", location=l, n_locations=n_locations)
    logger.debug("Beamformer scan completed")

    return variance, noise, nai


def location_nai(invC, invQ, H):
    ''' Source variance, noise variance and neural activity index of a single
    location.

    Parameters
    ----------
    invC : numpy.ndarray
        Inverse of the signal matrix (rank, rank).
    invQ : numpy.ndarray
        Inverse of the noise matrix (rank, rank).
    H : numpy.ndarray
        Forward model of the location (rank, dimensions).

    Return
    ------
    variance, noise, nai : float
    '''
    V_q = np.trace(np.linalg.pinv(H.T @ invC @ H)[:3, :3])  # Strength of source, Eqn 24
    N_q = np.trace(np.linalg.pinv(H.T @ invQ @ H)[:3, :3])  # Noise strength, Eqn 26
    NAI = V_q / N_q                                         # Neural activity index, Eqn 27
    return abs(V_q), abs(N_q), abs(NAI)


def beamformer_lcmv_epochs(signal, noise, leadfield, foi=None, sfreq=None, config=None, **kwargs):
    ''' LCMV beamformer on two conditions of epoched M/EEG data. The NAI is
    the ratio between the stimulus and the control condition.

    Parameters
    ----------
    signal : mne.BaseEpochs
        Stimulus condition.
    noise : mne.BaseEpochs
        Control condition with the same channels as signal.
    leadfield : Leadfield
        The forward model on the source grid.
    foi : float
        Frequency of interest for the cross spectral density (Hz).
    sfreq : None/float
        The sampling frequency. Taken from signal.info if None.
    config : None/LCMVConfig
        Configuration of the scan. Keyword arguments override its fields.

    Return
    ------
    image : VolumeImage
        The neural activity index at every location.
    '''
    logger.info("Performing LCMV beamforming on signal with noise data as reference")
    config = make_config(config, **kwargs)

    for name, obj in (("signal", signal), ("noise", noise)):
        if not isinstance(obj, mne.BaseEpochs):
            raise PreconditionError(f"Epochs not calculated: {name} is of type {type(obj)} but needs to be mne.Epochs")
    if signal.ch_names != noise.ch_names:
        raise PreconditionError("Signal and noise epochs have different channels")
    if foi is None:
        raise PreconditionError("A frequency of interest is required")
    if sfreq is None:
        sfreq = signal.info["sfreq"]

    # (epochs, channels, times) -> (samples, trials, sensors)
    x = signal.get_data(copy=True).transpose(2, 0, 1)
    n = noise.get_data(copy=True).transpose(2, 0, 1)

    n_epochs = (x.shape[1], n.shape[1])
    if config.target_epoch_count is not None:
        n_epochs = tuple(min(count, config.target_epoch_count) for count in n_epochs)

    leadfield = match_leadfield(leadfield, signal.ch_names)

    variance, noise_variance, nai = beamformer_lcmv(x, n, leadfield.L, sfreq, foi, config=config)

    info = dict(
        foi=foi,
        freq_band=(foi - config.frequency_half_bandwidth, foi + config.frequency_half_bandwidth),
        sfreq=sfreq,
        n_epochs=n_epochs,
        subspace=config.subspace,
        regularisation=config.regularisation,
        variance=variance,
        noise=noise_variance,
    )
    return VolumeImage(nai, "NAI", leadfield.x, leadfield.y, leadfield.z,
                       np.ones(len(nai)), "LCMV", info, "Talairach")
