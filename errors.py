# errors.py — error taxonomy of the sale pipeline


class StoreError(Exception):
    """Base error for the storefront backend"""


class ConfigurationMissing(StoreError):
    """A required endpoint or credential is not configured"""


class AggregationInvalid(StoreError):
    """The sale request body cannot be turned into an order"""


class UpstreamUnavailable(StoreError):
    """An external collaborator (sheet, webhook) answered with an error"""


class LedgerUnavailable(UpstreamUnavailable):
    pass


class LedgerWriteFailed(UpstreamUnavailable):
    pass


class NotificationFailed(StoreError):
    pass


class EmptyCart(StoreError):
    pass
