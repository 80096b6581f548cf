"""Setup loader — import the site's ``sitemill_setup.py``.

A site configures itself in Python: the setup module defines
``configure(site)``, which registers renderers, proxies, ignore rules and
extra manipulators before the first resource list is computed::

    # sitemill_setup.py
    def configure(site):
        site.register_renderer(".tmpl", render_template)
        site.proxy("/people/ada.html", "/person.html", locals={"name": "Ada"})
        site.ignore("drafts/*")
"""

from __future__ import annotations

import importlib.util
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING

from sitemill._errors import ConfigError

if TYPE_CHECKING:
    from sitemill.app import Site
    from sitemill.config import SitemillConfig

_MODULE_NAME = "sitemill_site_setup"


def load_setup(config: SitemillConfig) -> Callable[[Site], object] | None:
    """Import the setup module and return its ``configure`` callable.

    Returns None when the site has no setup module.

    Raises:
        ConfigError: The module fails to import or has no callable
            ``configure``.

    """
    py_file = config.setup_path
    if not py_file.is_file():
        return None

    spec_obj = importlib.util.spec_from_file_location(_MODULE_NAME, py_file)
    if spec_obj is None or spec_obj.loader is None:
        msg = f"setup file {py_file}: failed to load"
        raise ConfigError(msg)

    module = importlib.util.module_from_spec(spec_obj)
    sys.modules[_MODULE_NAME] = module
    try:
        spec_obj.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(_MODULE_NAME, None)
        msg = f"setup file {py_file.name}: {exc}"
        raise ConfigError(msg) from exc

    configure = getattr(module, "configure", None)
    if not callable(configure):
        msg = f"setup file {py_file.name}: configure(site) not defined"
        raise ConfigError(msg)
    return configure
