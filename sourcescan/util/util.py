import logging

import numpy as np

from ..errors import PreconditionError

logger = logging.getLogger(__name__)


def reduce_epochs(epochs, n_epochs):
    ''' Average epochs down to n_epochs by averaging contiguous blocks of
    trials.

    Blocks hold len(trials) // n_epochs trials each, the final block also
    takes the remaining trials.

    Parameters
    ----------
    epochs : numpy.ndarray
        Epoched data (samples, trials, sensors).
    n_epochs : int
        Number of epochs to keep.

    Return
    ------
    reduced : numpy.ndarray
        Epoched data (samples, n_epochs, sensors).

    Example
    -------
    28 trials reduced to 9 epochs are averaged in blocks 0-2, 3-5, ...,
    21-23 and 24-27.
    '''
    epochs = np.asarray(epochs)
    if epochs.ndim != 3:
        raise PreconditionError(f"Epoched data must be (samples, trials, sensors), got shape {epochs.shape}")
    n_trials = epochs.shape[1]
    if not 1 <= n_epochs <= n_trials:
        raise PreconditionError(f"Can not reduce {n_trials} trials to {n_epochs} epochs")

    block = n_trials // n_epochs
    starts = np.arange(n_epochs) * block
    stops = np.append(starts[1:], n_trials)
    reduced = np.stack([epochs[:, start:stop, :].mean(axis=1)
                        for start, stop in zip(starts, stops)], axis=1)

    logger.debug(f"Reduced {n_trials} trials to {n_epochs} epochs")
    return reduced
