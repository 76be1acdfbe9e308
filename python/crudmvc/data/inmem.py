"""
An implementation of the data layer interface based on a simple in-memory list of records.

This is provided primarily for testing purposes and for running a service in development mode.
"""
import threading, uuid
from copy import deepcopy
from datetime import datetime, timezone
from functools import cmp_to_key
from collections.abc import Mapping
from typing import List, Optional, Callable, Iterable

from . import base
from .query import (QueryDefinition, FilterDefinition, EQUALS, NOT_EQUALS, STRING_EQUALS, CONTAINS,
                    STARTS_WITH, ENDS_WITH, GREATER_THAN, GREATER_THAN_OR_EQUALS, LESS_THAN,
                    LESS_THAN_OR_EQUALS)

__all__ = [ "InMemoryCRUDDataLayer", "InMemorySubCRUDDataLayer" ]

def _now():
    return datetime.now(timezone.utc).isoformat()

def _as_number(val):
    if isinstance(val, bool):
        raise ValueError("not a number")
    if isinstance(val, (int, float)):
        return val
    return float(val)

def _as_text(val) -> str:
    # filter values are compared in their JSON rendering
    if isinstance(val, bool):
        return "true" if val else "false"
    return str(val)

def _compare(recval, operator, value) -> bool:
    if operator in (EQUALS, STRING_EQUALS):
        return recval is not None and _as_text(recval) == value
    if operator == NOT_EQUALS:
        return recval is None or _as_text(recval) != value
    if operator == CONTAINS:
        return recval is not None and value in _as_text(recval)
    if operator == STARTS_WITH:
        return recval is not None and _as_text(recval).startswith(value)
    if operator == ENDS_WITH:
        return recval is not None and _as_text(recval).endswith(value)

    # the remaining operators are ordering comparisons
    if recval is None:
        return False
    try:
        left, right = _as_number(recval), _as_number(value)
    except (TypeError, ValueError):
        left, right = _as_text(recval), value
    if operator == GREATER_THAN:
        return left > right
    if operator == GREATER_THAN_OR_EQUALS:
        return left >= right
    if operator == LESS_THAN:
        return left < right
    if operator == LESS_THAN_OR_EQUALS:
        return left <= right
    raise ValueError("Unsupported filter operator: " + str(operator))

def _sort_cmp(sorts):
    def cmp(a, b):
        for sd in sorts:
            av, bv = a.get_property(sd.sort_on), b.get_property(sd.sort_on)
            if av == bv:
                continue
            # None sorts first
            if av is None:
                out = -1
            elif bv is None:
                out = 1
            else:
                try:
                    out = -1 if av < bv else 1
                except TypeError:
                    out = -1 if _as_text(av) < _as_text(bv) else 1
            return -out if sd.descending else out
        return 0
    return cmp

class InMemoryCRUDDataLayer(base.CRUDDataLayer):
    """
    a data layer that keeps its records in memory.

    The layer can be primed with an initial set of records; :py:meth:`reset` restores the layer to
    that initial state.  Integer keys are assigned sequentially, starting after the largest key
    found among the initial records; string keys are assigned as UUIDs unless the record already
    has one.

    This implementation supports the following configuration parameters:

    ``initial_records``
        a list of record dictionaries to prime the layer with
    """

    def __init__(self, record_class: type, config: Mapping=None, conflict_check: Callable=None,
                 records: Iterable=None):
        """
        :param type record_class:  the :py:class:`~crudmvc.data.DataObject` subclass for the records
                                   managed by this data layer
        :param Mapping    config:  the data layer configuration
        :param Callable conflict_check:  a function that takes a record and returns True if the
                                   record has dependents preventing its deletion.  If not
                                   provided, records can always be deleted.
        :param records:  an initial set of records (as DataObject instances or dictionaries);
                         these are added after those given in the configuration.
        """
        super(InMemoryCRUDDataLayer, self).__init__(record_class)
        if config is None:
            config = {}
        self.cfg = config
        self._conflict_check = conflict_check
        self._lock = threading.RLock()

        self._initial = [deepcopy(r) for r in self.cfg.get('initial_records', [])]
        if records:
            self._initial.extend([r.to_dict() if isinstance(r, base.DataObject) else deepcopy(r)
                                  for r in records])
        self.reset()

    def reset(self):
        """
        restore the collection to its initial state
        """
        with self._lock:
            self._recs = []
            self._nextnum = 0
            for data in self._initial:
                rec = self.record_class.from_dict(data)
                if rec.key_type == base.INTEGER_KEY and rec.integer_id:
                    self._nextnum = max(self._nextnum, rec.integer_id)
                self._recs.append(rec)
            for rec in self._recs:
                if not rec.key:
                    self._assign_key(rec)

    def _assign_key(self, rec: base.DataObject):
        if rec.key_type == base.STRING_KEY:
            if not rec.string_id:
                rec.string_id = str(uuid.uuid4())
        else:
            self._nextnum += 1
            rec.integer_id = self._nextnum

    def _index_of(self, key) -> int:
        for i, rec in enumerate(self._recs):
            if rec.key == key:
                return i
        return -1

    def _check_valid(self, dataobj: base.DataObject):
        errs = self.validate(dataobj)
        if errs:
            raise base.DataObjectValidationError(errs, recid=dataobj.key or None)

    def count(self) -> int:
        with self._lock:
            return len(self._recs)

    def create(self, dataobj: base.DataObject) -> base.DataObject:
        self._check_valid(dataobj)
        rec = dataobj.copy()
        with self._lock:
            if rec.key_type == base.STRING_KEY and rec.string_id and self._index_of(rec.string_id) >= 0:
                raise base.DataObjectValidationError(
                    [base.ValidationResult("A record with this ID already exists", ["stringID"])],
                    recid=rec.string_id)
            # a record carries only the key of its type
            if rec.key_type == base.INTEGER_KEY:
                rec.string_id = None
            rec.integer_id = 0
            self._assign_key(rec)
            rec.last_edited_on = _now()
            self._recs.append(rec)
            return rec.copy()

    def delete(self, dataobj: base.DataObject):
        with self._lock:
            i = self._index_of(dataobj.key)
            if i < 0:
                return
            if self._conflict_check and self._conflict_check(self._recs[i]):
                raise base.DeleteConflict(dataobj.key)
            del self._recs[i]

    def get_all(self, where: base.Predicate=None) -> List[base.DataObject]:
        with self._lock:
            return [r.copy() for r in self._recs if where is None or where(r)]

    def get_page(self, query: QueryDefinition) -> base.PagedList:
        if query is None:
            query = QueryDefinition()
        with self._lock:
            selected = [r.copy() for r in self._recs
                        if all(self._matches(r, fd) for fd in query.filter_definitions)]
        if query.sort_definitions:
            selected.sort(key=cmp_to_key(_sort_cmp(query.sort_definitions)))

        total = len(selected)
        selected = selected[query.skip:]
        if query.take:
            selected = selected[:query.take]
        return base.PagedList(selected, total)

    def _matches(self, rec: base.DataObject, fd: FilterDefinition) -> bool:
        return _compare(rec.get_property(fd.filter_on), fd.operator, fd.value)

    def get_single(self, where: base.Predicate=None) -> Optional[base.DataObject]:
        with self._lock:
            for rec in self._recs:
                if where is None or where(rec):
                    return rec.copy()
        return None

    def update(self, dataobj: base.DataObject) -> base.DataObject:
        self._check_valid(dataobj)
        with self._lock:
            i = self._index_of(dataobj.key) if dataobj.key else -1
            if i < 0:
                raise base.IDNotFound(dataobj.key)
            stored = self._recs[i]
            if stored.last_edited_on and dataobj.last_edited_on != stored.last_edited_on:
                raise base.UpdateConflict(dataobj.key)

            rec = dataobj.copy()
            rec.last_edited_on = _now()
            self._recs[i] = rec
            return rec.copy()

class InMemorySubCRUDDataLayer(InMemoryCRUDDataLayer, base.SubCRUDDataLayer):
    """
    an in-memory data layer for sub-resource records.  The record class must be a
    :py:class:`~crudmvc.data.SubDataObject` subclass.
    """
    pass
