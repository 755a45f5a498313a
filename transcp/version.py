"""Version information for transcp."""

__version__ = "0.1.0"
__author__ = "transcp contributors"
__email__ = "transcp@users.noreply.github.com"
__description__ = "Transductive conformal prediction with pluggable nonconformity measures"
__url__ = "https://github.com/transcp/transcp"
