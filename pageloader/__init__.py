"""pageloader - debounced, cancellable, caching remote page loader.

Turns a rapid stream of search/page requests from a UI into a controlled
sequence of network calls against any paginated backend.
"""

__version__ = "0.1.0"
__author__ = "pageloader contributors"

from pageloader.core.config import LoaderOptions
from pageloader.core.data_models import LoaderState, PageResult
from pageloader.core.loader import RemoteLoader

__all__ = ["RemoteLoader", "LoaderOptions", "LoaderState", "PageResult", "__version__"]
