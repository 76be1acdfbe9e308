"""
The abstract interface expected of a data layer, along with the record types it trades in.

This interface is based on the following model:

  *  Each *record type* is a subclass of :py:class:`DataObject`.  A record can be expressed as a
     Python dictionary which can be exported into JSON.
  *  A record is identified by either a 64-bit integer key (``integerID``) or a string key
     (``stringID``) but not both; which key a record type uses is given by its ``key_type``
     attribute.
  *  A record type whose records are scoped beneath an owning record (a *sub-resource*) is a
     subclass of :py:class:`SubDataObject`, which adds an owner identifier.
  *  A record can be reduced to a :py:class:`ListView` for display in lists.
  *  A *data layer* (:py:class:`CRUDDataLayer`) manages the collection of records of a single
     type, providing create, read, update, and delete (CRUD) operations as well as paged queries.

A data layer signals failures by raising one of the :py:class:`DataLayerException` subclasses
defined here:  :py:class:`DataObjectValidationError`, :py:class:`UpdateConflict`,
:py:class:`IDNotFound`, or :py:class:`DeleteConflict`.  Any other exception is considered an
unclassified (server) error.
"""
import re
from abc import ABC, abstractmethod
from copy import deepcopy
from collections import OrderedDict
from collections.abc import Mapping, MutableMapping
from typing import List, Callable, Optional, Sequence, Union

import jsonschema

from .. import CRUDMVCException
from .query import QueryDefinition

__all__ = [ "DataObject", "SubDataObject", "ListView", "PagedList", "ValidationResult",
            "CRUDDataLayer", "SubCRUDDataLayer", "DataLayerException", "DataObjectValidationError",
            "UpdateConflict", "IDNotFound", "DeleteConflict", "INTEGER_KEY", "STRING_KEY",
            "Predicate" ]

INTEGER_KEY = "integer"
STRING_KEY = "string"

Predicate = Callable[["DataObject"], bool]

_core_schema_props = OrderedDict([
    ("integerID",    { "type": "integer", "minimum": 0 }),
    ("stringID",     { "type": ["string", "null"] }),
    ("name",         { "type": ["string", "null"] }),
    ("lastEditedOn", { "type": ["string", "null"] })
])

_sub_schema_props = OrderedDict([
    ("ownerIntegerID", { "type": "integer", "minimum": 0 }),
    ("ownerStringID",  { "type": ["string", "null"] })
])

class ValidationResult(object):
    """
    a description of a single validation failure:  a message and the names of the record
    properties that it applies to.  An empty list of member names indicates a failure that applies
    to the record as a whole.
    """

    def __init__(self, message: str, member_names: Sequence[str]=None):
        self.message = message
        self.member_names = list(member_names or [])

    def to_dict(self):
        return OrderedDict([("message", self.message), ("memberNames", list(self.member_names))])

    def __str__(self):
        if self.member_names:
            return "%s: %s" % (", ".join(self.member_names), self.message)
        return self.message

    def __repr__(self):
        return "ValidationResult(%r, %r)" % (self.message, self.member_names)

class DataObject(object):
    """
    a base class for a record that is managed by a data layer.

    The record's content is held as a dictionary of JSON-compatible properties.  Subclasses define
    a specific record type by setting the ``schema`` class attribute to a JSON Schema fragment
    (with ``properties`` and, optionally, ``required`` members) describing the properties specific
    to the type; they typically also provide Python properties for accessing those values.  The
    record type name (used in log and error messages) is the class name.
    """

    key_type = INTEGER_KEY
    schema = None

    def __init__(self, data: Mapping=None):
        """
        initialize the record with a dictionary of its properties
        """
        if data is None:
            data = {}
        self._data = self._initialize(OrderedDict(deepcopy(data)))

    def _initialize(self, data: MutableMapping) -> MutableMapping:
        """
        fill in any missing standard properties with their default values.  The implementation is
        allowed to update the input dictionary directly.
        """
        data.setdefault("integerID", 0)
        data.setdefault("stringID", None)
        data.setdefault("name", None)
        data.setdefault("lastEditedOn", None)
        return data

    @property
    def integer_id(self) -> int:
        """
        the integer key for this record (0 if not set)
        """
        return self._data.get("integerID") or 0

    @integer_id.setter
    def integer_id(self, val: int):
        self._data["integerID"] = val

    @property
    def string_id(self) -> Optional[str]:
        """
        the string key for this record (None if not set)
        """
        return self._data.get("stringID")

    @string_id.setter
    def string_id(self, val: str):
        self._data["stringID"] = val

    @property
    def key(self) -> Union[int, str, None]:
        """
        the value of the identifying key, depending on the record type's ``key_type``
        """
        if self.key_type == STRING_KEY:
            return self.string_id
        return self.integer_id

    @property
    def name(self) -> Optional[str]:
        return self._data.get("name")

    @name.setter
    def name(self, val: str):
        self._data["name"] = val

    @property
    def last_edited_on(self) -> Optional[str]:
        """
        the version marker for this record: the (ISO 8601) time that it was last saved.  A data
        layer uses this value to detect updates submitted from stale copies of the record.
        """
        return self._data.get("lastEditedOn")

    @last_edited_on.setter
    def last_edited_on(self, val: str):
        self._data["lastEditedOn"] = val

    def get(self, prop: str, default=None):
        """
        return the value of a named record property
        """
        return self._data.get(prop, default)

    def __getitem__(self, prop):
        return self._data[prop]

    def __setitem__(self, prop, val):
        self._data[prop] = val

    def __contains__(self, prop):
        return prop in self._data

    def resolve_property(self, prop: str) -> Optional[str]:
        """
        return the name of the record property matching the given name, ignoring case (so that,
        e.g., "Name" refers to the ``name`` property), or None if there is no such property.  An
        exact match is preferred.
        """
        if prop in self._data:
            return prop
        lprop = prop.lower()
        for key in self._data:
            if key.lower() == lprop:
                return key
        return None

    def get_property(self, prop: str, default=None):
        """
        return the value of the property matching the given name, ignoring case
        """
        key = self.resolve_property(prop)
        if key is None:
            return default
        return self._data[key]

    def to_dict(self) -> MutableMapping:
        """
        return a copy of this record's content as a JSON-ready dictionary
        """
        return deepcopy(self._data)

    @classmethod
    def from_dict(cls, data: Mapping):
        """
        create a record of this type from a dictionary of its properties
        """
        return cls(data)

    def copy(self):
        return self.__class__(self._data)

    def to_list_view(self):
        """
        return the reduced view of this record used for listing
        """
        return ListView(self.integer_id, self.string_id, self.name)

    @classmethod
    def get_schema(cls) -> Mapping:
        """
        return the complete JSON Schema that records of this type must comply with
        """
        props = OrderedDict(_core_schema_props)
        props.update(cls._extra_core_schema_props())
        required = []
        if cls.schema:
            props.update(cls.schema.get("properties", {}))
            required = list(cls.schema.get("required", []))
        return { "type": "object", "properties": props, "required": required }

    @classmethod
    def _extra_core_schema_props(cls):
        return {}

    @classmethod
    def type_name(cls) -> str:
        """
        the name of this record type
        """
        return cls.__name__

    def validate(self) -> List[ValidationResult]:
        """
        validate this record and return a list of the validation failures found or an empty list
        if the record is valid.
        """
        out = []
        validator = jsonschema.Draft7Validator(self.get_schema())
        for err in sorted(validator.iter_errors(self._data), key=lambda e: list(e.absolute_path)):
            out.append(ValidationResult(err.message, _member_for(err)))

        if self._data.get("integerID") and self._data.get("stringID"):
            out.append(ValidationResult("A record may not have both an integer ID and a string ID",
                                        ["integerID", "stringID"]))
        return out

    def __str__(self):
        return "%s(%s)" % (self.type_name(), str(self.key))

def _member_for(err) -> List[str]:
    if err.absolute_path:
        return [str(err.absolute_path[0])]
    if err.validator == "required":
        m = re.match(r"'(.+?)' is a required property", err.message)
        if m:
            return [m.group(1)]
    return []

class SubDataObject(DataObject):
    """
    a base class for a record that is scoped beneath an owning record.  The owner is identified
    by either an integer key (``ownerIntegerID``) or a string key (``ownerStringID``), according
    to the record type's ``owner_key_type``.
    """

    owner_key_type = INTEGER_KEY

    def _initialize(self, data: MutableMapping) -> MutableMapping:
        data = super(SubDataObject, self)._initialize(data)
        data.setdefault("ownerIntegerID", 0)
        data.setdefault("ownerStringID", None)
        return data

    @classmethod
    def _extra_core_schema_props(cls):
        return _sub_schema_props

    @property
    def owner_integer_id(self) -> int:
        return self._data.get("ownerIntegerID") or 0

    @owner_integer_id.setter
    def owner_integer_id(self, val: int):
        self._data["ownerIntegerID"] = val

    @property
    def owner_string_id(self) -> Optional[str]:
        return self._data.get("ownerStringID")

    @owner_string_id.setter
    def owner_string_id(self, val: str):
        self._data["ownerStringID"] = val

    @property
    def owner_id(self) -> Union[int, str, None]:
        """
        the identifier of the owning record, depending on the record type's ``owner_key_type``
        """
        if self.owner_key_type == STRING_KEY:
            return self.owner_string_id
        return self.owner_integer_id

class ListView(object):
    """
    a reduced projection of a record for display in lists
    """

    def __init__(self, integer_id: int=0, string_id: str=None, name: str=None):
        self.integer_id = integer_id
        self.string_id = string_id
        self.name = name

    def to_dict(self):
        return OrderedDict([("integerID", self.integer_id), ("stringID", self.string_id),
                            ("name", self.name)])

    @classmethod
    def from_dict(cls, data: Mapping):
        return cls(data.get("integerID", 0), data.get("stringID"), data.get("name"))

class PagedList(object):
    """
    a single page of query results along with the total number of records matching the query
    """

    def __init__(self, data_objects: Sequence=None, total_records: int=0):
        self.data_objects = list(data_objects or [])
        self.total_records = total_records

    def __len__(self):
        return len(self.data_objects)

    def __iter__(self):
        return iter(self.data_objects)

    def to_dict(self):
        return OrderedDict([("dataObjects", [d.to_dict() for d in self.data_objects]),
                            ("totalRecords", self.total_records)])

class CRUDDataLayer(ABC):
    """
    the abstract interface to a collection of records of a single type.

    Selection methods accept an optional ``where`` predicate--a function that takes a record and
    returns True if it should be selected; if not given, all records are selected.
    """

    def __init__(self, record_class: type):
        """
        :param type record_class:  the :py:class:`DataObject` subclass for the records managed by
                                   this data layer
        """
        if not isinstance(record_class, type) or not issubclass(record_class, DataObject):
            raise ValueError("record_class: not a DataObject class: " + str(record_class))
        self.record_class = record_class

    @abstractmethod
    def count(self) -> int:
        """
        return the number of records in the collection
        """
        raise NotImplementedError()

    @abstractmethod
    def create(self, dataobj: DataObject) -> DataObject:
        """
        add a new record to the collection, assigning it its identifying key, and return the
        record as saved.
        :raises DataObjectValidationError:  if the record is not valid
        """
        raise NotImplementedError()

    @abstractmethod
    def delete(self, dataobj: DataObject):
        """
        remove a record from the collection
        :raises DeleteConflict:  if another record depends on the record and prevents its deletion
        """
        raise NotImplementedError()

    @abstractmethod
    def get_all(self, where: Predicate=None) -> List[DataObject]:
        """
        return all the records that match the given predicate
        """
        raise NotImplementedError()

    def get_all_list_view(self, where: Predicate=None) -> List[ListView]:
        """
        return all the records that match the given predicate as list views
        """
        return [r.to_list_view() for r in self.get_all(where)]

    @abstractmethod
    def get_page(self, query: QueryDefinition) -> PagedList:
        """
        return the page of records selected by the given query definition
        """
        raise NotImplementedError()

    def get_page_list_view(self, query: QueryDefinition) -> PagedList:
        """
        return the page of records selected by the given query definition as list views
        """
        page = self.get_page(query)
        return PagedList([r.to_list_view() for r in page.data_objects], page.total_records)

    @abstractmethod
    def get_single(self, where: Predicate=None) -> Optional[DataObject]:
        """
        return the first record that matches the given predicate, or None if there is no match
        """
        raise NotImplementedError()

    @abstractmethod
    def update(self, dataobj: DataObject) -> DataObject:
        """
        replace a record in the collection with the given updated version and return the record
        as saved.
        :raises DataObjectValidationError:  if the record is not valid
        :raises IDNotFound:  if the collection has no record with the updated record's key
        :raises UpdateConflict:  if the updated record was derived from a stale copy of the record
        """
        raise NotImplementedError()

    def validate(self, dataobj: DataObject) -> List[ValidationResult]:
        """
        validate the given record, returning a list of failures.  This implementation returns
        the result of the record's own :py:meth:`~DataObject.validate` method.
        """
        return dataobj.validate()

class SubCRUDDataLayer(CRUDDataLayer):
    """
    the abstract interface to a collection of sub-resource records (i.e. :py:class:`SubDataObject`
    instances).  The interface is the same as :py:class:`CRUDDataLayer`; clients select records
    belonging to a particular owner via a ``where`` predicate or a filter definition on the owner
    key.
    """

    def __init__(self, record_class: type):
        if not isinstance(record_class, type) or not issubclass(record_class, SubDataObject):
            raise ValueError("record_class: not a SubDataObject class: " + str(record_class))
        super(SubCRUDDataLayer, self).__init__(record_class)

class DataLayerException(CRUDMVCException):
    """
    a base class for the exceptions a data layer raises to signal a classified failure
    """

    def __init__(self, message: str, recid=None):
        super(DataLayerException, self).__init__(message)
        self.record_id = recid

class DataObjectValidationError(DataLayerException):
    """
    an exception indicating that a record is invalid and requires correction or completion.

    The determination of invalid data may result from detailed data validation which may uncover
    multiple errors.  The ``validation_results`` property will contain a list of
    :py:class:`ValidationResult` instances, each describing a validation error encountered.  The
    :py:meth:`format_errors` will format all these messages into a single string for a (text-based)
    display.
    """

    def __init__(self, results: Sequence[ValidationResult]=None, message: str=None, recid=None):
        """
        initialize the exception
        :param list results:  the validation failures uncovered in the data
        :param str  message:  a brief description of the problem with the record
        :param        recid:  the key of the record that was validated, if known
        """
        results = list(results or [])
        if not message:
            if len(results) == 1:
                message = "Validation Error: " + str(results[0])
            elif len(results) == 0:
                message = "Unknown validation errors encountered"
            else:
                message = "Encountered %d validation errors, including: %s" % (len(results), str(results[0]))
        super(DataObjectValidationError, self).__init__(message, recid)
        self.validation_results = results

    def format_errors(self):
        """
        format into a string the listing of the validation errors encountered that resulted in
        this exception.  The returned string will have embedded newline characters for multi-line
        text-based display.
        """
        if not self.validation_results:
            return str(self)

        out = ""
        if self.record_id:
            out += "%s: " % self.record_id
        out += "Validation errors encountered:\n  * "
        out += "\n  * ".join([str(e) for e in self.validation_results])
        return out

class UpdateConflict(DataLayerException):
    """
    an exception indicating that an update was submitted using a stale copy of the record
    """

    def __init__(self, recid=None, message: str=None):
        if not message:
            message = "Record with id=%s was updated by another client" % recid
        super(UpdateConflict, self).__init__(message, recid)

class IDNotFound(DataLayerException):
    """
    an exception indicating that an update referenced a record that does not exist
    """

    def __init__(self, recid=None, message: str=None):
        if not message:
            message = "Requested record with id=%s does not exist" % recid
        super(IDNotFound, self).__init__(message, recid)

class DeleteConflict(DataLayerException):
    """
    an exception indicating that a record cannot be deleted because another record depends on it
    """

    def __init__(self, recid=None, message: str=None):
        if not message:
            message = "Record with id=%s has dependents that prevent its deletion" % recid
        super(DeleteConflict, self).__init__(message, recid)
