import sys

from museum_booking.cli import main

sys.exit(main())
