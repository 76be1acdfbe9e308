"""
The seam between the MVC controllers and a template engine.

An MVC handler describes the page it wants to return as a :py:class:`ViewResult`--the name of the
view, the model (a record or list of records), supplementary view data, and any validation errors--
and hands it to a :py:class:`ViewRenderer` which turns it into HTML.  The default renderer,
:py:class:`PreppyViewRenderer`, looks for a preppy template named after the view in a template
directory.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from collections.abc import Mapping
from typing import Any

import preppy

from .. import CRUDMVCException
from ..ext import ModelState

__all__ = [ "ViewResult", "ViewRenderer", "PreppyViewRenderer", "ViewNotFound" ]

class ViewNotFound(CRUDMVCException):
    """
    an exception indicating that no template exists for a requested view
    """
    def __init__(self, view_name: str, message: str=None):
        if not message:
            message = "%s: view not found" % view_name
        super(ViewNotFound, self).__init__(message)
        self.view_name = view_name

class ViewResult(object):
    """
    a description of a view to be rendered
    """

    def __init__(self, view_name: str, model: Any=None, view_data: Mapping=None, partial: bool=False,
                 model_state: ModelState=None):
        """
        :param str view_name:  the name of the view (e.g. "SimpleDataObjectIndex")
        :param model:          the record (or list of records) to display
        :param dict view_data: supplementary data for the view (e.g. ``owner_id``)
        :param bool  partial:  True if the view is a partial view (a fragment of a page)
        :param ModelState model_state:  the validation errors to display with the model
        """
        self.view_name = view_name
        self.model = model
        self.view_data = dict(view_data or {})
        self.partial = partial
        self.model_state = model_state if model_state is not None else ModelState()

class ViewRenderer(ABC):
    """
    an interface for turning a :py:class:`ViewResult` into HTML
    """

    @abstractmethod
    def render(self, view: ViewResult) -> str:
        """
        render the given view
        :raises ViewNotFound:  if the named view does not exist
        """
        raise NotImplementedError()

class PreppyViewRenderer(ViewRenderer):
    """
    a ViewRenderer that renders views with preppy templates.  The template for a view is a file in
    the template directory named after the view with a ``.prep`` extension.  Templates should
    declare their arguments as ``{{def(model, view_data, model_state)}}``.
    """
    file_extension = ".prep"

    def __init__(self, template_dir: str):
        if not template_dir:
            raise ValueError("PreppyViewRenderer: template_dir is required")
        self.template_dir = Path(template_dir)

    def resolve_template_path(self, view_name: str) -> Path:
        """
        return the full path to the template for the named view
        """
        return self.template_dir / (view_name + self.file_extension)

    def render(self, view: ViewResult) -> str:
        template_path = self.resolve_template_path(view.view_name)
        if not template_path.is_file():
            raise ViewNotFound(view.view_name)

        template = preppy.getModule(str(template_path))
        return template.get(view.model, view.view_data, view.model_state)
