# engine/errors.py

class GuardError(Exception):
    pass


class InvalidProfile(GuardError):
    pass


class UnknownService(GuardError):
    pass


class InvalidSample(GuardError):
    pass
