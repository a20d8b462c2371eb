# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Logging setup for the sanitizer passes.

Messages carry a header in glog style:

  I/MMDD HH:mm:SS.USEC PID-TID MODULENAME:LINENO] LOGGING_MESSAGE

The fraction of the second has msec resolution, so its trailing three digits
are always zero. MODULENAME is the pass module, e.g. variant_transition.
"""

import logging
import shlex


_MSG_FORMAT = (
    '%(levelinitial)s/%(asctime)s.%(msecs)03d000 %(process)d-%(thread)d '
    '%(module)s:%(lineno)s] %(message)s')
_DATE_FORMAT = '%m%d %H:%M:%S'

# Indexed by the number of --verbose flags.
_VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


class _LevelInitialFilter(logging.Filter):
  """Adds the |levelinitial| field _MSG_FORMAT refers to."""

  def filter(self, record):
    """Sets record.levelinitial.

    Args:
      record: LogRecord about to be formatted.
    Returns:
      Always True. No record is dropped.
    """
    # glog prints F for fatal, which python calls CRITICAL.
    if record.levelno >= logging.CRITICAL:
      record.levelinitial = 'F'
    else:
      record.levelinitial = record.levelname[:1]
    return True


def get_level(verbosity):
  """Maps the number of --verbose flags to a logging level.

  Args:
    verbosity: How many times --verbose was given.
  Returns:
    logging.WARNING when not verbose, then INFO, then DEBUG.
  """
  index = min(max(verbosity, 0), len(_VERBOSITY_LEVELS) - 1)
  return _VERBOSITY_LEVELS[index]


def create_handler(stream=None):
  """Returns a logging.StreamHandler writing glog style lines to |stream|.

  |stream| defaults to sys.stderr.
  """
  handler = logging.StreamHandler(stream)
  handler.setFormatter(logging.Formatter(_MSG_FORMAT, _DATE_FORMAT))
  # Filters on a handler also see the records of child loggers.
  handler.addFilter(_LevelInitialFilter())
  return handler


def setup(level=logging.WARNING):
  """Initializes the root logger for a sanitize_runner invocation.

  The handler is only installed when nothing else configured logging yet,
  but |level| always applies.

  Args:
    level: Minimum logging level.
  """
  logging.basicConfig(handlers=[create_handler()])
  logging.getLogger().setLevel(level)


def format_flags(flags):
  """Formats a flag list the way it would be passed on a shell.

  Args:
    flags: List of compiler or linker flags.
  Returns:
    A single string. Flags with shell metacharacters are quoted.
  """
  return ' '.join(shlex.quote(flag) for flag in flags)
