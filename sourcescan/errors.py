class PreconditionError(ValueError):
    ''' Raised when the input to a scan violates one of its preconditions,
    e.g. mismatched sensor counts, non-finite values or an empty frequency
    band. Nothing is computed once this has been raised.
    '''
