class DensityMapError(ValueError):
    """Base class for structural problems in GRLE / GDM data."""


class UnrecognizedMagic(DensityMapError):
    pass


class UnsupportedVersion(DensityMapError):
    pass


class UnsupportedFeature(DensityMapError):
    pass


class TruncatedInput(DensityMapError):
    pass


class InvalidRangeBoundaries(DensityMapError):
    pass


class InvalidImage(DensityMapError):
    """Image that cannot be stored in the requested format (size, dtype, mode)."""


class MissingEncodeParameters(DensityMapError):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__("GDM encoding needs " + ", ".join(self.missing))
