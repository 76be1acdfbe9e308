"""
Formatting helpers used by the controllers:  spacing out record type names for display, and
collecting per-field validation errors into a "model state".
"""
import re, json
from collections import OrderedDict
from typing import Iterable, List

from .data.base import DataObjectValidationError, ValidationResult

__all__ = [ "space_capital_letters", "ModelState", "copy_to_model_state", "errors_to_json" ]

def space_capital_letters(value: str) -> str:
    """
    insert a space before each capital letter in the given string (and trim the result), turning,
    for example, "SimpleDataObject" into "Simple Data Object".
    """
    return re.sub(r'([A-Z])', r' \1', value).strip()

class ModelState(OrderedDict):
    """
    the aggregated set of per-field validation errors for a submitted record.  Each key is the name
    of a record property (or an empty string for errors that apply to the whole record); each value
    is the list of error messages recorded for it.
    """

    def add_model_error(self, key: str, message: str):
        """
        record an error message for a property
        """
        self.setdefault(key, []).append(message)

    @property
    def is_valid(self) -> bool:
        """
        True if no errors have been recorded
        """
        return not any(self.values())

    def error_count(self) -> int:
        return sum(len(v) for v in self.values())

def copy_to_model_state(results, model_state: ModelState) -> ModelState:
    """
    copy validation failures into a model state:  each failure's message is recorded against each
    of the property names it applies to.  Failures without a message are skipped.

    :param results:  the validation failures, given either as a :py:class:`DataObjectValidationError`
                     or a list of :py:class:`~crudmvc.data.ValidationResult` instances
    :param ModelState model_state:  the model state to add errors to
    :return:  the updated ``model_state``
    """
    if isinstance(results, DataObjectValidationError):
        results = results.validation_results
    for result in results:
        if result.message is None:
            continue
        for member in (result.member_names or [""]):
            model_state.add_model_error(member, result.message)
    return model_state

def errors_to_json(model_state: ModelState) -> str:
    """
    serialize the errors in a model state into an indented JSON object mapping each property name
    to its list of messages
    """
    return json.dumps(OrderedDict((k, list(v)) for k, v in model_state.items()), indent=2)
