# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package polycom_vvx manages Polycom VVX desk phones over the local network
"""

# The following line is automatically updated with "semantic-release version"
__version__ =  "0.3.0"


__all__ = [ "__version__" ]
