from .util import reduce_epochs
