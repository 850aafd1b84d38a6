import numpy as np
import colorednoise as cn


def simulate_epochs(H, foi, sfreq, n_samples=2048, n_trials=20, source_idx=None,
                    orientation=None, amplitude=1.0, noise_std=1.0, beta=0,
                    noise_color_coeff=0.0, random_seed=None):
    """ Simulate epoched steady-state responses of a single dipole.

    The source emits a phase locked sinusoid at the frequency of interest
    which is projected through the forward model and buried in sensor
    noise.

    Parameters
    ----------
    H : numpy.ndarray
        Forward model (locations, dimensions, sensors).
    foi : float
        Frequency of the source (Hz).
    sfreq : float
        Sampling frequency (Hz).
    n_samples : int
        Number of samples per epoch. Default is 2048.
    n_trials : int
        Number of epochs. Default is 20.
    source_idx : None/int
        Location of the source. None simulates noise only, i.e. a control
        condition.
    orientation : None/numpy.ndarray
        Orientation of the dipole (dimensions,). Default is along the first
        dimension.
    amplitude : float
        Amplitude of the source. Default is 1.0.
    noise_std : float
        Standard deviation of the sensor noise. Default is 1.0.
    beta : float
        Power-law exponent of the noise spectrum, 0 is white, 1 is pink.
    noise_color_coeff : float
        Spatial coloring of the noise. Neighbouring sensors share this
        fraction of their noise. Default is 0.
    random_seed : None / int
        The random seed for replicable simulations

    Return
    ------
    x : numpy.ndarray
        The simulated epochs (samples, trials, sensors).
    """
    rng = np.random.default_rng(random_seed)
    n_locations, n_dims, n_sensors = H.shape

    X_noise = cn.powerlaw_psd_gaussian(beta, (n_trials, n_sensors, n_samples), random_state=rng)
    X_noise /= X_noise.std()
    if noise_color_coeff > 0:
        # Bounded coloring: each sensor picks up the noise of its neighbours
        X_noise = X_noise + (noise_color_coeff / np.sqrt(2)) * (
            np.roll(X_noise, 1, axis=1) + np.roll(X_noise, -1, axis=1))
    x = noise_std * X_noise.transpose(2, 0, 1)

    if source_idx is not None:
        if orientation is None:
            orientation = np.zeros(n_dims)
            orientation[0] = 1
        topography = np.asarray(orientation) @ H[source_idx]
        t = np.arange(n_samples) / sfreq
        time_course = amplitude * np.sin(2 * np.pi * foi * t)
        x = x + time_course[:, np.newaxis, np.newaxis] * topography[np.newaxis, np.newaxis, :]

    return x
