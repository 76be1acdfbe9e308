"""
The data layer contract used by the crudmvc controllers.

The controllers in :py:mod:`crudmvc.controller` do not store records themselves; instead, they are
given a *data layer*--an implementation of :py:class:`~crudmvc.data.base.CRUDDataLayer`--that
manages a collection of records of a single type.  This package defines that interface, the record
base classes (:py:class:`DataObject` and :py:class:`SubDataObject`), the list-view and paging
types, the query vocabulary (:py:mod:`~crudmvc.data.query`), and the exceptions a data layer
raises to signal classified failures.  An in-memory implementation suitable for testing is
provided in :py:mod:`~crudmvc.data.inmem`.
"""
from .base import *
from .query import QueryDefinition, FilterDefinition, SortDefinition
