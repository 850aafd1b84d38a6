import logging
from copy import deepcopy

import numpy as np
from mne.io.constants import FIFF

from .errors import PreconditionError

logger = logging.getLogger(__name__)


class Leadfield:
    ''' Forward model on a grid of source locations.

    Parameters
    ----------
    L : numpy.ndarray
        The leadfield (locations, dimensions, sensors).
    x, y, z : numpy.ndarray
        Coordinates of each location.
    sensors : list
        Names of the sensors in the order of the last axis of L.
    '''
    def __init__(self, L, x, y, z, sensors):
        self.L = np.asarray(L, dtype=float)
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.z = np.asarray(z, dtype=float)
        self.sensors = list(sensors)
        self.check()

    def check(self):
        if self.L.ndim != 3:
            raise PreconditionError(f"Leadfield must be (locations, dimensions, sensors), got shape {self.L.shape}")
        n_locations, _, n_sensors = self.L.shape
        for name, coord in zip("xyz", (self.x, self.y, self.z)):
            if coord.shape != (n_locations,):
                raise PreconditionError(f"Coordinate {name} has shape {coord.shape} but there are {n_locations} locations")
        if len(self.sensors) != n_sensors:
            raise PreconditionError(f"Leadfield has {n_sensors} sensors but {len(self.sensors)} sensor names")
        if len(set(self.sensors)) != n_sensors:
            raise PreconditionError("Sensor names of the leadfield are not unique")

    @property
    def n_locations(self):
        return self.L.shape[0]

    @property
    def n_dimensions(self):
        return self.L.shape[1]

    @property
    def n_sensors(self):
        return self.L.shape[2]

    @classmethod
    def from_forward(cls, forward):
        ''' Create the leadfield from a free orientation mne.Forward model.

        Parameters
        ----------
        forward : mne.Forward
            The mne-python Forward model instance.

        Return
        ------
        leadfield : Leadfield
        '''
        gain = forward["sol"]["data"]
        n_chans = gain.shape[0]
        n_dipoles = forward["source_rr"].shape[0]
        if forward["source_ori"] == FIFF.FIFFV_MNE_FREE_ORI:
            n_dims = 3
        else:
            n_dims = 1
            logger.info("Forward model has fixed source orientation, scanning a single dimension per location.")

        L = gain.reshape(n_chans, n_dipoles, n_dims).transpose(1, 2, 0)
        pos = forward["source_rr"]
        return cls(L, pos[:, 0], pos[:, 1], pos[:, 2], forward["ch_names"])

    def __repr__(self):
        return f"<Leadfield | {self.n_locations} locations, {self.n_dimensions} dimensions, {self.n_sensors} sensors>"


def match_leadfield(leadfield, sensors):
    ''' Reorder the sensor axis of the leadfield to match the sensor order of
    the data.

    Parameters
    ----------
    leadfield : Leadfield
        The leadfield.
    sensors : list
        Sensor names of the data.

    Return
    ------
    leadfield : Leadfield
        A new leadfield whose sensors are in the order of sensors.
    '''
    sensors = list(sensors)
    if set(sensors) != set(leadfield.sensors) or len(sensors) != leadfield.n_sensors:
        missing = sorted(set(sensors) - set(leadfield.sensors))
        extra = sorted(set(leadfield.sensors) - set(sensors))
        msg = f"Sensors of data and leadfield differ. Missing in leadfield: {missing}, missing in data: {extra}"
        raise PreconditionError(msg)

    if sensors == leadfield.sensors:
        return leadfield

    order = [leadfield.sensors.index(name) for name in sensors]
    matched = deepcopy(leadfield)
    matched.L = matched.L[:, :, order]
    matched.sensors = sensors
    logger.debug("Reordered leadfield sensors to match data")
    return matched
