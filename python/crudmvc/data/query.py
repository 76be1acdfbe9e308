"""
Definitions for querying a data layer for a page of records.

A :py:class:`QueryDefinition` carries the paging parameters (``skip`` and ``take``) along with an
ordered list of :py:class:`FilterDefinition` and :py:class:`SortDefinition` instances.  How filters
and sorts are applied is up to the data layer; this module only defines the vocabulary and how a
query is expressed in a URL query string.  In a query string, a query looks like this:

.. code-block::

   Skip=0&Take=20&FilterDefinitions[0].FilterOn=name&FilterDefinitions[0].Operator=Contains&
   FilterDefinitions[0].Value=Widget&SortDefinitions[0].SortOn=name&SortDefinitions[0].SortOrder=Descending

Parameter names are matched without regard to case.
"""
import re, json
from collections import OrderedDict
from collections.abc import Mapping
from typing import List, Sequence
from urllib.parse import parse_qsl

__all__ = [ "QueryDefinition", "FilterDefinition", "SortDefinition", "OPERATORS",
            "EQUALS", "NOT_EQUALS", "STRING_EQUALS", "CONTAINS", "STARTS_WITH", "ENDS_WITH",
            "GREATER_THAN", "GREATER_THAN_OR_EQUALS", "LESS_THAN", "LESS_THAN_OR_EQUALS",
            "ASCENDING", "DESCENDING" ]

EQUALS                 = "Equals"
NOT_EQUALS             = "NotEquals"
STRING_EQUALS          = "StringEquals"
CONTAINS               = "Contains"
STARTS_WITH            = "StartsWith"
ENDS_WITH              = "EndsWith"
GREATER_THAN           = "GreaterThan"
GREATER_THAN_OR_EQUALS = "GreaterThanOrEquals"
LESS_THAN              = "LessThan"
LESS_THAN_OR_EQUALS    = "LessThanOrEquals"
OPERATORS = [ EQUALS, NOT_EQUALS, STRING_EQUALS, CONTAINS, STARTS_WITH, ENDS_WITH, GREATER_THAN,
              GREATER_THAN_OR_EQUALS, LESS_THAN, LESS_THAN_OR_EQUALS ]

ASCENDING  = "Ascending"
DESCENDING = "Descending"

_item_param_re = re.compile(r'^(filterdefinitions|sortdefinitions)\[(\d+)\]\.(\w+)$')

def _canonical(value: str, choices: Sequence[str], what: str) -> str:
    for c in choices:
        if c.lower() == value.lower():
            return c
    raise ValueError("%s: not a recognized value: %s" % (what, value))

class FilterDefinition(object):
    """
    a single condition on a named record property
    """

    def __init__(self, filter_on: str, operator: str=EQUALS, value: str=""):
        """
        :param str filter_on:  the name of the record property to test
        :param str  operator:  the comparison to apply (one of ``OPERATORS``)
        :param str     value:  the value to compare against, given as a string
        """
        self.filter_on = filter_on
        self.operator = _canonical(operator, OPERATORS, "operator")
        self.value = value

    def to_dict(self):
        return OrderedDict([("filterOn", self.filter_on), ("operator", self.operator),
                            ("value", self.value)])

    def __repr__(self):
        return "FilterDefinition(%r, %r, %r)" % (self.filter_on, self.operator, self.value)

class SortDefinition(object):
    """
    a sort order on a named record property
    """

    def __init__(self, sort_on: str, sort_order: str=ASCENDING):
        self.sort_on = sort_on
        self.sort_order = _canonical(sort_order, [ASCENDING, DESCENDING], "sort order")

    @property
    def descending(self) -> bool:
        return self.sort_order == DESCENDING

    def to_dict(self):
        return OrderedDict([("sortOn", self.sort_on), ("sortOrder", self.sort_order)])

class QueryDefinition(object):
    """
    a description of a page of records to retrieve from a data layer
    """

    def __init__(self, skip: int=0, take: int=0, filter_definitions: List[FilterDefinition]=None,
                 sort_definitions: List[SortDefinition]=None):
        """
        :param int skip:  the number of matching records to skip over before the page starts
        :param int take:  the maximum number of records to include in the page; 0 means no limit
        :param list filter_definitions:  the conditions records must satisfy to be selected
        :param list sort_definitions:    the order to sort selected records in, applied in order
        """
        if skip < 0 or take < 0:
            raise ValueError("QueryDefinition: skip and take must not be negative")
        self.skip = skip
        self.take = take
        self.filter_definitions = list(filter_definitions or [])
        self.sort_definitions = list(sort_definitions or [])

    def to_dict(self):
        return OrderedDict([
            ("skip", self.skip),
            ("take", self.take),
            ("filterDefinitions", [f.to_dict() for f in self.filter_definitions]),
            ("sortDefinitions", [s.to_dict() for s in self.sort_definitions])
        ])

    def to_json(self, indent=None):
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_query_string(cls, qs: str):
        """
        create a QueryDefinition from the parameters in a URL query string.  Parameters that are
        not part of a query definition are ignored.
        :raises ValueError:  if a parameter value is malformed
        """
        if not qs:
            return cls()
        return cls.from_params(parse_qsl(qs, keep_blank_values=True))

    @classmethod
    def from_params(cls, params):
        """
        create a QueryDefinition from a list of name-value pairs (or a dictionary)
        :raises ValueError:  if a parameter value is malformed
        """
        if isinstance(params, Mapping):
            params = params.items()

        skip = 0
        take = 0
        items = { "filterdefinitions": {}, "sortdefinitions": {} }
        for name, value in params:
            lname = name.lower()
            if lname == "skip":
                skip = int(value)
            elif lname == "take":
                take = int(value)
            else:
                m = _item_param_re.match(lname)
                if m:
                    items[m.group(1)].setdefault(int(m.group(2)), {})[m.group(3)] = value

        filters = []
        for i in sorted(items["filterdefinitions"]):
            fd = items["filterdefinitions"][i]
            if not fd.get("filteron"):
                raise ValueError("FilterDefinitions[%d]: missing FilterOn" % i)
            filters.append(FilterDefinition(fd["filteron"], fd.get("operator") or EQUALS,
                                            fd.get("value", "")))
        sorts = []
        for i in sorted(items["sortdefinitions"]):
            sd = items["sortdefinitions"][i]
            if not sd.get("sorton"):
                raise ValueError("SortDefinitions[%d]: missing SortOn" % i)
            sorts.append(SortDefinition(sd["sorton"], sd.get("sortorder") or ASCENDING))

        return cls(skip, take, filters, sorts)
