# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Resolves the sanitize properties of a single module.

The global lists and path rules only fill fields the module left unset,
in the order they are applied below. The order is significant: e.g. an
integer overflow exclude path clears the mode even when an include path
matched first.
"""

import logging

from sanitizer_variants import mutual_exclusion
from sanitizer_variants import toolchain


class ConfigurationError(Exception):
  """A module-scoped sanitizer configuration error."""

  def __init__(self, module_name, option, message):
    super(ConfigurationError, self).__init__(
        '%s: %s (option: %s)' % (module_name, message, option))
    self.module_name = module_name
    self.option = option


def _remove_from_list(name, names):
  """Returns (found, names without |name|)."""
  if name not in names:
    return False, names
  return True, [x for x in names if x != name]


def _get_global_sanitizers(module, policy):
  """Returns (sanitizers, diag sanitizers) from the global policy."""
  if module.is_host():
    if module.toolchain.is_windows():
      return [], []
    return list(policy.sanitize_host()), []
  arches = policy.sanitize_device_arch()
  if not arches or module.arch in arches:
    return list(policy.sanitize_device()), list(policy.sanitize_device_diag())
  return [], []


def _apply_global_sanitizers(module, policy, s):
  global_sanitizers, global_diag = _get_global_sanitizers(module, policy)
  if not global_sanitizers:
    return

  # Global name -> field, for names without extra conditions.
  simple_fields = [
      ('undefined', 'all_undefined'),
      ('default-ub', 'undefined'),
      ('address', 'address'),
      ('thread', 'thread'),
      ('fuzzer', 'fuzzer'),
      ('safe-stack', 'safestack'),
  ]
  for name, field in simple_fields:
    found, global_sanitizers = _remove_from_list(name, global_sanitizers)
    if found and getattr(s, field) is None:
      setattr(s, field, True)

  found, global_sanitizers = _remove_from_list('cfi', global_sanitizers)
  if found and s.cfi is None:
    if not policy.is_cfi_disabled_for_path(module.module_dir):
      s.cfi = True

  # Global integer_overflow builds do not support static libraries.
  found, global_sanitizers = _remove_from_list('integer_overflow',
                                               global_sanitizers)
  if found and s.integer_overflow is None:
    if (not policy.is_integer_overflow_disabled_for_path(module.module_dir) and
        not module.is_static()):
      s.integer_overflow = True

  found, global_sanitizers = _remove_from_list('scudo', global_sanitizers)
  if found and s.scudo is None:
    s.scudo = True

  found, global_sanitizers = _remove_from_list('hwaddress', global_sanitizers)
  if found and s.hwaddress is None:
    s.hwaddress = True

  found, global_sanitizers = _remove_from_list('writeonly', global_sanitizers)
  if found and s.writeonly is None:
    s.writeonly = True

  found, global_sanitizers = _remove_from_list('memtag_heap',
                                               global_sanitizers)
  if found and s.memtag_heap is None:
    if not policy.is_memtag_heap_disabled_for_path(module.module_dir):
      s.memtag_heap = True

  found, global_sanitizers = _remove_from_list('memtag_stack',
                                               global_sanitizers)
  if found and s.memtag_stack is None:
    s.memtag_stack = True

  if global_sanitizers:
    raise ConfigurationError(
        module.name, global_sanitizers[0],
        'unknown global sanitizer option %s' % global_sanitizers[0])

  # Global integer_overflow builds do not support static library diagnostics.
  found, global_diag = _remove_from_list('integer_overflow', global_diag)
  if (found and s.diag.integer_overflow is None and
      s.integer_overflow is True and not module.is_static()):
    s.diag.integer_overflow = True

  found, global_diag = _remove_from_list('cfi', global_diag)
  if found and s.diag.cfi is None and s.cfi is True:
    s.diag.cfi = True

  found, global_diag = _remove_from_list('memtag_heap', global_diag)
  if found and s.diag.memtag_heap is None and s.memtag_heap is True:
    s.diag.memtag_heap = True

  if global_diag:
    raise ConfigurationError(
        module.name, global_diag[0],
        'unknown global sanitizer diagnostics option %s' % global_diag[0])


def _check_writeonly(module, s):
  if s.writeonly is True and not (s.address is True or s.hwaddress is True):
    raise ConfigurationError(
        module.name, 'writeonly',
        "writeonly modifier cannot be used without 'address' or 'hwaddress'")


def _apply_path_rules(module, policy, s):
  path = module.module_dir
  is_arm64 = module.arch == toolchain.ARM64

  # Memtag for all components in the include paths (AArch64 only).
  if is_arm64 and module.toolchain.bionic():
    if policy.is_memtag_heap_sync_enabled_for_path(path):
      if s.memtag_heap is None:
        s.memtag_heap = True
      if s.diag.memtag_heap is None:
        s.diag.memtag_heap = True
    elif policy.is_memtag_heap_async_enabled_for_path(path):
      if s.memtag_heap is None:
        s.memtag_heap = True

  if (s.integer_overflow is None and is_arm64 and
      policy.is_integer_overflow_enabled_for_path(path)):
    s.integer_overflow = True

  if (is_arm64 and policy.is_bound_sanitizer_enabled_for_path(path) and
      'bounds' not in s.misc_undefined):
    s.misc_undefined.append('bounds')

  if is_arm64 and policy.is_bound_sanitizer_disabled_for_path(path):
    if 'bounds' in s.misc_undefined:
      s.misc_undefined.remove('bounds')

  # Integer overflow checking is off in exclude paths.
  if is_arm64 and policy.is_integer_overflow_disabled_for_path(path):
    for check in ('signed-integer-overflow', 'unsigned-integer-overflow'):
      if check in s.misc_undefined:
        s.misc_undefined.remove(check)
    s.integer_overflow = None

  # CFI for non-host components in the include paths.
  if (s.cfi is None and not module.is_host() and
      policy.is_cfi_enabled_for_path(path)):
    s.cfi = True
    if 'cfi' in policy.sanitize_device_diag():
      s.diag.cfi = True

  # CFI is off in the exclude paths (AArch64 only).
  if is_arm64 and policy.is_cfi_disabled_for_path(path):
    s.cfi = None
    if 'cfi' in policy.sanitize_device_diag():
      s.diag.cfi = None

  if not policy.enable_cfi():
    s.cfi = None
    s.diag.cfi = None


def resolve_policy(module, policy):
  """Applies the module defaults, global lists and path rules to |module|.

  Returns False when the module opted out of sanitizers (or carries no
  sanitize properties), in which case nothing else is applied.
  Raises ConfigurationError for an unknown global sanitizer name or a
  writeonly modifier without an address sanitizer.
  """
  s = module.sanitize
  if s is None:
    return False

  # Don't apply sanitizers to NDK code.
  if module.use_sdk:
    s.never = True

  # Never always wins.
  if s.never is True:
    logging.debug('%s: sanitizers disabled', module.name)
    return False

  # Test binaries default to SYNC memtag unless explicitly set to ASYNC.
  if module.test_binary:
    if s.memtag_heap is None:
      s.memtag_heap = True
    if s.diag.memtag_heap is None:
      s.diag.memtag_heap = True

  _apply_global_sanitizers(module, policy, s)
  _check_writeonly(module, s)
  _apply_path_rules(module, policy, s)
  return True


def resolve(module, policy):
  """Fully resolves the sanitize properties of |module|."""
  if resolve_policy(module, policy):
    mutual_exclusion.enforce(module, policy)
  return module.sanitize
