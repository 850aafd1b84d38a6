import numpy as np
import pandas as pd


class VolumeImage:
    ''' Scalar values on a set of source locations, e.g. the neural activity
    index of an LCMV scan.

    Parameters
    ----------
    data : numpy.ndarray
        One value per location.
    units : str
        What the values represent, e.g. "NAI".
    x, y, z : numpy.ndarray
        Coordinates of each location.
    weights : numpy.ndarray
        Weight of each location.
    method : str
        Name of the method that produced the values.
    info : dict
        Additional information on how the values were obtained.
    coord_system : str
        The coordinate system of x, y and z.
    '''
    def __init__(self, data, units, x, y, z, weights, method, info, coord_system):
        self.data = np.asarray(data, dtype=float)
        self.units = units
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.z = np.asarray(z, dtype=float)
        self.weights = np.asarray(weights, dtype=float)
        self.method = method
        self.info = dict(info)
        self.coord_system = coord_system

        n = len(self.data)
        for name in ("x", "y", "z", "weights"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} has {len(getattr(self, name))} entries but there are {n} values")

    def __len__(self):
        return len(self.data)

    def peak(self):
        ''' Coordinates and value of the location with the largest value.'''
        idx = int(np.argmax(self.data))
        return (self.x[idx], self.y[idx], self.z[idx]), self.data[idx]

    def to_dataframe(self):
        ''' One row per location with its coordinates, weight and value.'''
        return pd.DataFrame({
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "weight": self.weights,
            self.units: self.data,
        })

    def __repr__(self):
        return f"<VolumeImage | {self.method} {self.units}, {len(self)} locations, {self.coord_system}>"
