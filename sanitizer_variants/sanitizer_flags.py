# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Compiler, assembler and linker flags for sanitized modules."""

import logging

from sanitizer_variants import toolchain

_ASAN_CFLAGS = ['-fno-omit-frame-pointer']
_ASAN_LDFLAGS = ['-Wl,-u,__asan_preinit']

_HWASAN_CFLAGS = [
    '-fno-omit-frame-pointer',
    '-Wno-frame-larger-than=',
    '-fsanitize-hwaddress-abi=platform',
    '-mllvm', '-hwasan-use-after-scope=1',
]

# Code generation happens at link time with ThinLTO, so these go to both the
# compiler and the linker.
_HWASAN_COMMON_FLAGS = [
    # Keeps more stack variables in the debug info for hwasan reports.
    '-instcombine-lower-dbg-declare=0',
    # HWASan does not work with GlobalISel, the aarch64 default at -O0.
    '--aarch64-enable-global-isel-at-O=-1',
    '-fast-isel=false',
]

_CFI_CFLAGS = [
    '-flto',
    '-fsanitize-cfi-cross-dso',
    '-fsanitize-blacklist=external/compiler-rt/lib/cfi/cfi_blocklist.txt',
]
# clang needs these with -fsanitize=cfi even though they do nothing for
# assembly.
_CFI_ASFLAGS = ['-flto', '-fvisibility=default']
_CFI_LDFLAGS = [
    '-flto',
    '-fsanitize-cfi-cross-dso',
    '-fsanitize=cfi',
    '-Wl,-plugin-opt,O1',
]

_INT_OVERFLOW_CFLAGS = [
    '-fsanitize-blacklist=build/soong/cc/config/integer_overflow_blocklist.txt',
]

_MINIMAL_RUNTIME_FLAGS = [
    '-fsanitize-minimal-runtime',
    '-fno-sanitize-trap=integer,undefined',
    '-fno-sanitize-recover=integer,undefined',
]

_MEMTAG_STACK_COMMON_FLAGS = ['-march=armv8-a+memtag']

# The checks enabled by 'undefined: true'.
_DEFAULT_UNDEFINED_CHECKS = [
    'bool',
    'integer-divide-by-zero',
    'return',
    'returns-nonnull-attribute',
    'shift-exponent',
    'unreachable',
    'vla-bound',
]


class Flags(object):
  """Flag lists of one module.

  |required_instruction_set| and |dynamic_linker| are None unless a
  sanitizer overrides them.
  """

  def __init__(self, cflags=None, asflags=None, ldflags=None,
               global_ldflags=None):
    self._cflags = list(cflags or [])
    self._asflags = list(asflags or [])
    self._ldflags = list(ldflags or [])
    self._global_ldflags = list(global_ldflags or [])
    self._cflags_deps = []
    self.required_instruction_set = None
    self.dynamic_linker = None

  def get_cflags(self):
    return self._cflags

  def get_asflags(self):
    return self._asflags

  def get_ldflags(self):
    return self._ldflags

  def get_global_ldflags(self):
    return self._global_ldflags

  def get_cflags_deps(self):
    """Returns files the compile steps depend on, e.g. blocklists."""
    return self._cflags_deps

  def add_cflags(self, *flags):
    self._cflags.extend(flags)
    return self

  def add_asflags(self, *flags):
    self._asflags.extend(flags)
    return self

  def add_ldflags(self, *flags):
    self._ldflags.extend(flags)
    return self

  def add_cflags_dep(self, path):
    self._cflags_deps.append(path)
    return self

  def has_cflag(self, flag):
    return flag in self._cflags

  @staticmethod
  def _remove(flag, flags):
    while flag in flags:
      flags.remove(flag)

  def remove_cflag(self, flag):
    """Removes all uses of a given compiler flag."""
    Flags._remove(flag, self._cflags)

  def remove_ldflag(self, flag):
    Flags._remove(flag, self._ldflags)

  def remove_global_ldflag(self, flag):
    Flags._remove(flag, self._global_ldflags)

  def to_dict(self):
    result = {
        'cflags': list(self._cflags),
        'asflags': list(self._asflags),
        'ldflags': list(self._ldflags),
        'global_ldflags': list(self._global_ldflags),
        'cflags_deps': list(self._cflags_deps),
    }
    if self.required_instruction_set:
      result['required_instruction_set'] = self.required_instruction_set
    if self.dynamic_linker:
      result['dynamic_linker'] = self.dynamic_linker
    return result


def enable_minimal_runtime(s):
  """True if the UBSan checks of |s| only need the minimal runtime.

  That is the case when checks are enabled but none of them in diagnostic
  form, and no sanitizer with a full runtime of its own is enabled.
  """
  if s.address is True or s.hwaddress is True or s.fuzzer is True:
    return False
  if not (s.integer_overflow is True or s.misc_undefined or
          s.undefined is True or s.all_undefined is True):
    return False
  return not (s.diag.integer_overflow is True or s.diag.cfi is True or
              s.diag.undefined is True or s.diag.misc_undefined)


def enable_ubsan_runtime(s):
  """True if |s| has UBSan checks in diagnostic form."""
  return bool(s.diag.integer_overflow is True or s.diag.undefined is True or
              s.diag.misc_undefined)


def compute_sanitizer_lists(module):
  """Fills the -fsanitize= lists of |module| from its final properties."""
  s = module.sanitize
  sanitizers = []
  diag_sanitizers = []

  if s.all_undefined is True:
    sanitizers.append('undefined')
  else:
    if s.undefined is True:
      sanitizers.extend(_DEFAULT_UNDEFINED_CHECKS)
    sanitizers.extend(s.misc_undefined)

  if s.diag.undefined is True:
    diag_sanitizers.append('undefined')
  diag_sanitizers.extend(s.diag.misc_undefined)

  if s.address is True:
    sanitizers.append('address')
    diag_sanitizers.append('address')
  if s.hwaddress is True:
    sanitizers.append('hwaddress')
  if s.thread is True:
    sanitizers.append('thread')
  if s.safestack is True:
    sanitizers.append('safe-stack')
  if s.cfi is True:
    sanitizers.append('cfi')
    if s.diag.cfi is True:
      diag_sanitizers.append('cfi')
  if s.integer_overflow is True:
    sanitizers.extend(['unsigned-integer-overflow', 'signed-integer-overflow'])
    if s.diag.integer_overflow is True:
      diag_sanitizers.extend(['unsigned-integer-overflow',
                              'signed-integer-overflow'])
  if s.scudo is True:
    sanitizers.append('scudo')
  if s.scs is True:
    sanitizers.append('shadow-call-stack')
  # memtag-heap and memtag-stack are not passed to -fsanitize until the
  # toolchain accepts them again.
  if s.fuzzer is True:
    sanitizers.append('fuzzer-no-link')

  s.sanitizers = sanitizers
  s.diag_sanitizers = diag_sanitizers
  return sanitizers, diag_sanitizers


def _has_integer_check(flags):
  return any(f.startswith('-fsanitize') and 'integer' in f for f in flags)


def _should_disable_check(check, flags):
  """True if integer checks are on and |check| was not explicitly set."""
  if any(('sanitize=' + check) in f for f in flags):
    return False
  return _has_integer_check(flags)


def _add_address_flags(module, s, flags):
  if module.arch == toolchain.ARM:
    # The frame pointer based unwinder needs ARM frame setup.
    flags.required_instruction_set = 'arm'
  flags.add_cflags(*_ASAN_CFLAGS)
  flags.add_ldflags(*_ASAN_LDFLAGS)
  if s.writeonly is True:
    flags.add_cflags('-mllvm', '-asan-instrument-reads=0')

  if module.is_host():
    # -nodefaultlibs would drop the libraries -fsanitize=address needs.
    flags.add_ldflags('-Wl,--no-as-needed')
    return
  flags.add_cflags('-mllvm', '-asan-globals=0')
  if module.bootstrap:
    flags.dynamic_linker = '/system/bin/bootstrap/linker_asan'
  else:
    flags.dynamic_linker = '/system/bin/linker_asan'
  if module.toolchain.is_64bit():
    flags.dynamic_linker += '64'


def _add_hwaddress_flags(s, flags):
  flags.add_cflags(*_HWASAN_CFLAGS)
  for flag in _HWASAN_COMMON_FLAGS:
    flags.add_cflags('-mllvm', flag)
  for flag in _HWASAN_COMMON_FLAGS:
    flags.add_ldflags('-Wl,-mllvm,' + flag)
  if s.writeonly is True:
    flags.add_cflags('-mllvm', '-hwasan-instrument-reads=0')


def _add_fuzzer_flags(flags):
  flags.add_cflags('-fsanitize=fuzzer-no-link')

  # LTO does not work with the fuzzer.
  flags.remove_ldflag('-flto')
  flags.remove_cflag('-flto')
  flags.add_ldflags('-fno-lto')
  flags.add_cflags('-fno-lto')

  # The runtime linker scripts drop the emulated TLS sancov_lowest_stack.
  flags.add_ldflags('-fno-sanitize-coverage=stack-depth')
  flags.add_cflags('-fno-sanitize-coverage=stack-depth')

  # Fortify checks pollute the fuzzer stack traces.
  flags.add_cflags('-U_FORTIFY_SOURCE')

  # Libraries are deployed next to the fuzzer that loads them.
  flags.add_ldflags(r'-Wl,-rpath,\$$ORIGIN')


def _add_cfi_flags(module, s, flags):
  if module.arch == toolchain.ARM:
    # __cfi_check must be Thumb, which can only be forced per module.
    flags.required_instruction_set = 'thumb'

  flags.add_cflags(*_CFI_CFLAGS)
  flags.add_asflags(*_CFI_ASFLAGS)
  if s.cfi_assembly_support is True:
    flags.add_cflags('-fno-sanitize-cfi-canonical-jump-tables')
  if not flags.has_cflag('-fvisibility=hidden'):
    flags.add_cflags('-fvisibility=default')
  flags.add_ldflags(*_CFI_LDFLAGS)

  if module.is_static_binary():
    flags.remove_cflag('-fsanitize-cfi-cross-dso')
    flags.remove_ldflag('-fsanitize-cfi-cross-dso')


def _add_memtag_stack_flags(flags):
  flags.add_cflags(*_MEMTAG_STACK_COMMON_FLAGS)
  flags.add_cflags('-Wno-error=frame-larger-than')
  flags.add_asflags(*_MEMTAG_STACK_COMMON_FLAGS)
  flags.add_ldflags(*_MEMTAG_STACK_COMMON_FLAGS)
  # lld complains about the stack frame size.
  flags.add_ldflags('-Wl,--no-fatal-warnings')


def _add_sanitize_list_flags(module, s, flags):
  tc = module.toolchain
  sanitize_arg = '-fsanitize=' + ','.join(s.sanitizers)
  flags.add_cflags(sanitize_arg)
  flags.add_asflags(sanitize_arg)
  flags.add_ldflags(sanitize_arg)

  if tc.bionic() or tc.musl():
    # The runtime is added as an explicit dependency instead.
    flags.add_ldflags('-fno-sanitize-link-runtime')
  else:
    # Host runtimes are only linked into the final executable.
    flags.remove_global_ldflag('-Wl,--no-undefined')

  if not tc.bionic():
    flags.add_cflags('-fno-sanitize=vptr,function')

  if s.fuzzer is True:
    flags.add_cflags('-fno-sanitize-trap=all', '-fno-sanitize-recover=all')
  elif module.is_host():
    flags.add_cflags('-fno-sanitize-recover=all')
  else:
    flags.add_cflags('-fsanitize-trap=all', '-ftrap-function=abort')

  if enable_minimal_runtime(s):
    flags.add_cflags(*_MINIMAL_RUNTIME_FLAGS)

  if _should_disable_check('implicit-integer-sign-change', flags.get_cflags()):
    flags.add_cflags('-fno-sanitize=implicit-integer-sign-change')
  if _should_disable_check('unsigned-shift-base', flags.get_cflags()):
    flags.add_cflags('-fno-sanitize=unsigned-shift-base')


def get_flags(module, session, flags=None):
  """Adds the sanitizer flags of |module| to |flags| and returns it.

  compute_sanitizer_lists() must have been called for |module|. The
  blocklist is resolved through the session path resolver, which records it
  as a build input.
  """
  if flags is None:
    flags = Flags()
  s = module.sanitize
  if s is None or (not s.sanitizer_enabled and not s.ubsan_runtime_dep):
    return flags

  if s.address is True:
    _add_address_flags(module, s, flags)
  if s.hwaddress is True:
    _add_hwaddress_flags(s, flags)
  if s.fuzzer is True:
    _add_fuzzer_flags(flags)
  if s.cfi is True:
    _add_cfi_flags(module, s, flags)
  if s.memtag_stack is True:
    _add_memtag_stack_flags(flags)
  # -fsanitize-memtag-mode=sync/async is not passed to binaries until the
  # toolchain accepts it again.
  if s.integer_overflow is True:
    flags.add_cflags(*_INT_OVERFLOW_CFLAGS)

  if s.sanitizers:
    _add_sanitize_list_flags(module, s, flags)

  if s.diag_sanitizers:
    flags.add_cflags('-fno-sanitize-trap=' + ','.join(s.diag_sanitizers))

  if s.recover is not None:
    flags.add_cflags('-fsanitize-recover=' + ','.join(s.recover))
  if s.diag.no_recover is not None:
    flags.add_cflags('-fno-sanitize-recover=' + ','.join(s.diag.no_recover))

  blocklist = session.path_resolver.resolve(module, s.blocklist)
  if blocklist:
    flags.add_cflags('-fsanitize-blacklist=' + blocklist)
    flags.add_cflags_dep(blocklist)

  logging.debug('%s: cflags %s', module.variant_name(),
                ' '.join(flags.get_cflags()))
  return flags
