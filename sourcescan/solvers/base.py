import logging

import numpy as np

from ..errors import PreconditionError

logger = logging.getLogger(__name__)


def regularise(C, regularisation):
    ''' Apply diagonal loading relative to the largest singular value of the
    (real part of the) covariance matrix.

    Parameters
    ----------
    C : numpy.ndarray
        Covariance or cross spectral density matrix (sensors, sensors).
    regularisation : float
        Dimensionless regularisation parameter. The effective loading is
        regularisation * S, with S the largest singular value of real(C).

    Return
    ------
    C_reg : numpy.ndarray
        The regularised matrix. C itself if regularisation is 0.
    '''
    if regularisation < 0:
        raise PreconditionError(f"regularisation must be non-negative, got {regularisation}")
    if regularisation == 0:
        return C

    max_eig = np.linalg.svd(np.real(C), compute_uv=False).max()
    alpha = regularisation * max_eig
    logger.debug(f"Regularised matrix with lambda = {alpha}")
    return C + alpha * np.identity(C.shape[0])


def retain_svd(M, subspace):
    ''' Find the basis of singular vectors that holds a given fraction of the
    singular value mass of M.

    The retained rank k is the smallest integer for which
    sum(s[:k]) / sum(s) >= subspace.

    Parameters
    ----------
    M : numpy.ndarray
        Real matrix (sensors, sensors).
    subspace : float
        Target fraction of singular value mass. If <= 0 no reduction is
        applied and the identity is returned.

    Return
    ------
    basis : numpy.ndarray
        The subspace basis (k, sensors).
    retained : float
        The fraction of singular value mass held by the basis.
    '''
    n_sensors = M.shape[0]
    if subspace <= 0:
        return np.identity(n_sensors), 1.0

    U, s, _ = np.linalg.svd(M)
    power = np.cumsum(s) / s.sum()
    if subspace >= 1:
        k = n_sensors
    else:
        # Guard against round-off leaving power[-1] marginally below 1
        k = min(int(np.searchsorted(power, subspace, side='left')) + 1, n_sensors)

    basis = U[:, :k].T
    return basis, power[k-1]


def project_subspace(basis, M):
    ''' Project the square matrix M into the subspace spanned by basis.'''
    return basis @ M @ basis.T


def robust_inverse(C):
    ''' Moore-Penrose pseudo-inverse of C. Rank deficient matrices yield the
    generalized inverse instead of an error.'''
    return np.linalg.pinv(C)
