name = "stepreport"
__author__ = "stepreport contributors"
__email__ = "stepreport@users.noreply.github.com"
__maintainer__ = "stepreport contributors"
__maintainer_email__ = "stepreport@users.noreply.github.com"
__license__ = "MIT"
__version__ = "0.1.0"

__data_url__ = "https://d396qusza40orc.cloudfront.net/repdata%2Fdata%2Factivity.zip"
