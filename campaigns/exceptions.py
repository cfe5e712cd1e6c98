from django.core.exceptions import ImproperlyConfigured


class TriggerConfigError(ValueError):
    """A campaign's trigger configuration cannot be used by its evaluator."""


class SendingNotConfigured(ImproperlyConfigured):
    """The channel is disabled or its credentials are missing."""


class DeliveryNotRecorded(Exception):
    """The send finished but its outcome could not be written to the record."""

    def __init__(self, record_id: int, outcome):
        super().__init__(f"Outcome of delivery {record_id} was not recorded")
        self.record_id = record_id
        self.outcome = outcome

    @property
    def accepted(self) -> bool:
        return self.outcome.success
