# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Code for parsing and holding the global sanitizer policy."""

import argparse
import re

# Option name -> default value. List options hold sanitizer names or path
# prefixes.
_DEFAULTS = {
    'sanitize_host': [],
    'sanitize_device': [],
    'sanitize_device_diag': [],
    'sanitize_device_arch': [],
    'cfi_include_paths': [],
    'cfi_exclude_paths': [],
    'integer_overflow_include_paths': [],
    'integer_overflow_exclude_paths': [],
    'bound_sanitizer_include_paths': [],
    'bound_sanitizer_exclude_paths': [],
    'memtag_heap_sync_include_paths': [],
    'memtag_heap_async_include_paths': [],
    'memtag_heap_exclude_paths': [],
    'disable_cfi': False,
    'disable_scudo': False,
}

_LIST_SEPARATOR_RE = re.compile(r'[,\s]+')


def _split_list(value):
  if not value:
    return []
  return [x for x in _LIST_SEPARATOR_RE.split(value) if x]


def _has_any_prefix(path, prefixes):
  return any(path.startswith(prefix) for prefix in prefixes)


class GlobalPolicy(object):
  """Device-wide and host-wide sanitizer settings.

  Values are read through getters generated from the option names, e.g.
  policy.sanitize_device() returns the list given by --sanitize-device.
  """

  def __init__(self, **kwargs):
    unknown = set(kwargs) - set(_DEFAULTS)
    if unknown:
      raise TypeError('Unknown policy options: %s' % ', '.join(sorted(unknown)))
    self._values = {}
    for name, default in _DEFAULTS.items():
      value = kwargs.get(name, default)
      self._values[name] = list(value) if isinstance(value, list) else value

  def __getattr__(self, name):
    """Provides getters for the policy values.

    For example, policy.disable_scudo() returns True if --disable-scudo is
    passed from the command line.
    """
    values = self.__dict__.get('_values', {})
    if name in values:
      return lambda: values[name]
    raise AttributeError(
        "'GlobalPolicy' object has no attribute '" + name + "'")

  def enable_cfi(self):
    return not self._values['disable_cfi']

  def is_cfi_enabled_for_path(self, path):
    return _has_any_prefix(path, self._values['cfi_include_paths'])

  def is_cfi_disabled_for_path(self, path):
    return _has_any_prefix(path, self._values['cfi_exclude_paths'])

  def is_integer_overflow_enabled_for_path(self, path):
    return _has_any_prefix(path, self._values['integer_overflow_include_paths'])

  def is_integer_overflow_disabled_for_path(self, path):
    return _has_any_prefix(path, self._values['integer_overflow_exclude_paths'])

  def is_bound_sanitizer_enabled_for_path(self, path):
    return _has_any_prefix(path, self._values['bound_sanitizer_include_paths'])

  def is_bound_sanitizer_disabled_for_path(self, path):
    return _has_any_prefix(path, self._values['bound_sanitizer_exclude_paths'])

  def is_memtag_heap_sync_enabled_for_path(self, path):
    return _has_any_prefix(path, self._values['memtag_heap_sync_include_paths'])

  def is_memtag_heap_async_enabled_for_path(self, path):
    return _has_any_prefix(path,
                           self._values['memtag_heap_async_include_paths'])

  def is_memtag_heap_disabled_for_path(self, path):
    return _has_any_prefix(path, self._values['memtag_heap_exclude_paths'])

  @staticmethod
  def add_arguments(parser):
    """Adds the policy flags to an argparse.ArgumentParser instance."""
    parser.add_argument('--sanitize-host', type=_split_list, default=[],
                        metavar='names',
                        help='Comma-separated sanitizers enabled for every '
                        'host module (the SANITIZE_HOST list).')

    parser.add_argument('--sanitize-device', type=_split_list, default=[],
                        metavar='names',
                        help='Comma-separated sanitizers enabled for every '
                        'device module (the SANITIZE_TARGET list).')

    parser.add_argument('--sanitize-device-diag', type=_split_list,
                        default=[], metavar='names',
                        help='Sanitizers from --sanitize-device to run in '
                        'diagnostic mode.')

    parser.add_argument('--sanitize-device-arch', type=_split_list,
                        default=[], metavar='arches',
                        help='Restricts --sanitize-device to these arches. '
                        'Empty means every arch.')

    for option, what in (('cfi', 'CFI'),
                         ('integer-overflow', 'integer overflow checking'),
                         ('bound-sanitizer', 'bounds checking')):
      parser.add_argument('--%s-include-paths' % option, type=_split_list,
                          default=[], metavar='paths',
                          help='Path prefixes where %s is forced on.' % what)
      parser.add_argument('--%s-exclude-paths' % option, type=_split_list,
                          default=[], metavar='paths',
                          help='Path prefixes where %s is forced off.' % what)

    parser.add_argument('--memtag-heap-sync-include-paths', type=_split_list,
                        default=[], metavar='paths',
                        help='Path prefixes where synchronous heap memory '
                        'tagging is enabled (arm64 only).')

    parser.add_argument('--memtag-heap-async-include-paths', type=_split_list,
                        default=[], metavar='paths',
                        help='Path prefixes where asynchronous heap memory '
                        'tagging is enabled (arm64 only).')

    parser.add_argument('--memtag-heap-exclude-paths', type=_split_list,
                        default=[], metavar='paths',
                        help='Path prefixes where a global memtag_heap '
                        'request is ignored.')

    parser.add_argument('--disable-cfi', action='store_true',
                        help='Disable control flow integrity everywhere.')

    parser.add_argument('--disable-scudo', action='store_true',
                        help='Disable the scudo hardened allocator '
                        'everywhere.')

  @staticmethod
  def from_args(parsed_args):
    values = vars(parsed_args)
    return GlobalPolicy(**dict(
        (name, values[name]) for name in _DEFAULTS if name in values))

  @staticmethod
  def parse(args):
    parser = argparse.ArgumentParser()
    GlobalPolicy.add_arguments(parser)
    return GlobalPolicy.from_args(parser.parse_args(args))
