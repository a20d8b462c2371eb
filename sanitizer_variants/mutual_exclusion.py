# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Clears sanitizer combinations that cannot be built together.

enforce() only ever clears fields; it never turns a sanitizer on. Running it
twice gives the same result as running it once.
"""

import logging

from sanitizer_variants import toolchain


def _clear_cfi(s):
  s.cfi = None
  s.diag.cfi = None


def _is_any_sanitizer_enabled(s):
  return (s.all_undefined is True or s.undefined is True or
          s.address is True or s.thread is True or s.fuzzer is True or
          s.safestack is True or s.cfi is True or
          s.integer_overflow is True or len(s.misc_undefined) > 0 or
          s.scudo is True or s.hwaddress is True or s.scs is True or
          s.memtag_heap is True or s.memtag_stack is True)


def enforce(module, policy):
  s = module.sanitize
  if s is None or s.never is True:
    return s
  tc = module.toolchain
  aarch64_bionic = module.arch == toolchain.ARM64 and tc.bionic()

  # HWASan requires the AArch64 top-byte-ignore feature, and SCS is only
  # implemented on AArch64.
  if not aarch64_bionic:
    s.hwaddress = None
    s.scs = None

  # Memtag is AArch64 only, and its ABI is Android specific.
  if not aarch64_bionic or module.is_host():
    s.memtag_heap = None
    s.memtag_stack = None

  # ASan and HWASan win against CFI and MTE.
  if s.address is True or s.hwaddress is True:
    _clear_cfi(s)
    s.memtag_heap = None
    s.memtag_stack = None

  if s.hwaddress is True:
    s.address = None
    s.thread = None

  # CFI depends on LTO, which does not work with the fuzzer.
  if s.fuzzer is True:
    _clear_cfi(s)

  # Sanitizers that need the UBSan runtime only work on Linux.
  if not tc.is_linux():
    _clear_cfi(s)
    s.misc_undefined = []
    s.undefined = None
    s.all_undefined = None
    s.integer_overflow = None

  if tc.musl():
    _clear_cfi(s)

  if module.vndk and module.use_vndk:
    _clear_cfi(s)

  # Keep libc instrumented so that ramdisk and recovery images can run
  # hwasan-instrumented code, but nothing else there.
  if (module.in_ramdisk_or_recovery() and
      not module.module_dir.startswith('bionic/libc')):
    s.hwaddress = None

  if module.is_static_binary():
    s.address = None
    s.fuzzer = None
    s.thread = None

  if s.all_undefined is True:
    s.undefined = None

  # TSan and SafeStack are not supported on 32-bit architectures.
  if not tc.is_64bit():
    s.thread = None
    s.safestack = None

  if (s.address is True or s.thread is True or s.hwaddress is True or
      policy.disable_scudo()):
    s.scudo = None

  if not tc.is_windows() and _is_any_sanitizer_enabled(s):
    s.sanitizer_enabled = True
    logging.debug('%s: sanitizers enabled', module.name)
  return s
