# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Unittest for sanitizer_flags.py."""

import unittest

from sanitizer_variants import build_options
from sanitizer_variants import build_session
from sanitizer_variants import module_graph
from sanitizer_variants import sanitizer_flags


def _module(kind=module_graph.SHARED_LIBRARY, os='android', arch='arm64',
            diag=None, **sanitize):
  module = module_graph.Module(
      'libfoo', kind, os=os, arch=arch, module_dir='system/foo',
      sanitize=module_graph.SanitizePolicy(diag=diag, **sanitize))
  module.sanitize.sanitizer_enabled = True
  return module


def _get_flags(module, session=None, flags=None):
  if session is None:
    session = build_session.BuildSession(build_options.GlobalPolicy())
  sanitizer_flags.compute_sanitizer_lists(module)
  return sanitizer_flags.get_flags(module, session, flags)


class FlagsUnittest(unittest.TestCase):
  def testAddAndRemove(self):
    flags = sanitizer_flags.Flags(cflags=['-flto', '-O2', '-flto'])
    self.assertIs(flags, flags.add_cflags('-g'))
    flags.remove_cflag('-flto')
    self.assertEqual(['-O2', '-g'], flags.get_cflags())
    self.assertTrue(flags.has_cflag('-g'))
    flags.remove_ldflag('-missing')
    self.assertEqual([], flags.get_ldflags())

  def testToDict(self):
    flags = sanitizer_flags.Flags(ldflags=['-Wl,--gc-sections'])
    self.assertNotIn('dynamic_linker', flags.to_dict())
    flags.dynamic_linker = '/system/bin/linker_asan64'
    result = flags.to_dict()
    self.assertEqual('/system/bin/linker_asan64', result['dynamic_linker'])
    self.assertEqual(['-Wl,--gc-sections'], result['ldflags'])


class RuntimeSelectionUnittest(unittest.TestCase):
  def testMinimalRuntime(self):
    s = module_graph.SanitizePolicy(integer_overflow=True)
    self.assertTrue(sanitizer_flags.enable_minimal_runtime(s))
    self.assertFalse(sanitizer_flags.enable_ubsan_runtime(s))

    s = module_graph.SanitizePolicy(
        integer_overflow=True,
        diag=module_graph.DiagProperties(integer_overflow=True))
    self.assertFalse(sanitizer_flags.enable_minimal_runtime(s))
    self.assertTrue(sanitizer_flags.enable_ubsan_runtime(s))

    s = module_graph.SanitizePolicy(undefined=True, address=True)
    self.assertFalse(sanitizer_flags.enable_minimal_runtime(s))
    self.assertFalse(sanitizer_flags.enable_minimal_runtime(
        module_graph.SanitizePolicy(cfi=True)))

  def testDiagCfiNeedsFullRuntime(self):
    s = module_graph.SanitizePolicy(
        misc_undefined=['bounds'], diag=module_graph.DiagProperties(cfi=True))
    self.assertFalse(sanitizer_flags.enable_minimal_runtime(s))


class ComputeSanitizerListsUnittest(unittest.TestCase):
  def testUndefined(self):
    module = _module(undefined=True, misc_undefined=['bounds'])
    sanitizers, diag = sanitizer_flags.compute_sanitizer_lists(module)
    self.assertEqual(['bool', 'integer-divide-by-zero', 'return',
                      'returns-nonnull-attribute', 'shift-exponent',
                      'unreachable', 'vla-bound', 'bounds'], sanitizers)
    self.assertEqual([], diag)

    module = _module(all_undefined=True, undefined=True,
                     misc_undefined=['bounds'])
    sanitizers, _ = sanitizer_flags.compute_sanitizer_lists(module)
    self.assertEqual(['undefined'], sanitizers)

  def testModes(self):
    module = _module(
        address=True, cfi=True, integer_overflow=True, safestack=True,
        scs=True, fuzzer=True, memtag_heap=True, memtag_stack=True,
        diag=module_graph.DiagProperties(cfi=True, integer_overflow=True))
    sanitizers, diag = sanitizer_flags.compute_sanitizer_lists(module)
    self.assertEqual(
        ['address', 'safe-stack', 'cfi', 'unsigned-integer-overflow',
         'signed-integer-overflow', 'shadow-call-stack', 'fuzzer-no-link'],
        sanitizers)
    self.assertEqual(['address', 'cfi', 'unsigned-integer-overflow',
                      'signed-integer-overflow'], diag)
    self.assertEqual(sanitizers, module.sanitize.sanitizers)
    self.assertEqual(diag, module.sanitize.diag_sanitizers)


class GetFlagsUnittest(unittest.TestCase):
  def testDisabledModuleUnchanged(self):
    module = _module(address=True)
    module.sanitize.sanitizer_enabled = False
    flags = _get_flags(module, flags=sanitizer_flags.Flags(cflags=['-O2']))
    self.assertEqual(['-O2'], flags.get_cflags())
    self.assertEqual([], flags.get_ldflags())

  def testDeviceAddress(self):
    flags = _get_flags(_module(address=True, writeonly=True))
    cflags = flags.get_cflags()
    self.assertIn('-fno-omit-frame-pointer', cflags)
    self.assertIn('-asan-instrument-reads=0', cflags)
    self.assertIn('-asan-globals=0', cflags)
    self.assertIn('-fsanitize=address', cflags)
    self.assertIn('-fsanitize-trap=all', cflags)
    self.assertIn('-fno-sanitize-trap=address', cflags)
    self.assertNotIn('-fno-sanitize=vptr,function', cflags)
    self.assertEqual(['-Wl,-u,__asan_preinit', '-fsanitize=address',
                      '-fno-sanitize-link-runtime'], flags.get_ldflags())
    self.assertEqual('/system/bin/linker_asan64', flags.dynamic_linker)
    self.assertIsNone(flags.required_instruction_set)

  def testBootstrap32BitAddress(self):
    module = _module(arch='arm', address=True)
    module.bootstrap = True
    flags = _get_flags(module)
    self.assertEqual('/system/bin/bootstrap/linker_asan', flags.dynamic_linker)
    self.assertEqual('arm', flags.required_instruction_set)

  def testHostAddress(self):
    module = _module(os='linux_glibc', arch='x86_64', address=True)
    flags = _get_flags(module, flags=sanitizer_flags.Flags(
        global_ldflags=['-Wl,--no-undefined', '-Wl,--gc-sections']))
    self.assertIsNone(flags.dynamic_linker)
    self.assertIn('-Wl,--no-as-needed', flags.get_ldflags())
    self.assertNotIn('-fno-sanitize-link-runtime', flags.get_ldflags())
    self.assertEqual(['-Wl,--gc-sections'], flags.get_global_ldflags())
    self.assertIn('-fno-sanitize=vptr,function', flags.get_cflags())
    self.assertIn('-fno-sanitize-recover=all', flags.get_cflags())
    self.assertNotIn('-fsanitize-trap=all', flags.get_cflags())

  def testHwaddress(self):
    flags = _get_flags(_module(hwaddress=True))
    self.assertIn('-fsanitize-hwaddress-abi=platform', flags.get_cflags())
    self.assertIn('-Wl,-mllvm,-fast-isel=false', flags.get_ldflags())
    self.assertIn('-fsanitize=hwaddress', flags.get_asflags())

  def testCfi(self):
    flags = _get_flags(_module(cfi=True, cfi_assembly_support=True))
    cflags = flags.get_cflags()
    self.assertIn('-fsanitize-cfi-cross-dso', cflags)
    self.assertIn('-fno-sanitize-cfi-canonical-jump-tables', cflags)
    self.assertIn('-fvisibility=default', cflags)
    self.assertEqual(['-flto', '-fvisibility=default', '-fsanitize=cfi'],
                     flags.get_asflags())
    self.assertIn('-Wl,-plugin-opt,O1', flags.get_ldflags())

  def testCfiKeepsHiddenVisibility(self):
    flags = _get_flags(_module(cfi=True),
                       flags=sanitizer_flags.Flags(
                           cflags=['-fvisibility=hidden']))
    self.assertNotIn('-fvisibility=default', flags.get_cflags())

  def testCfiStaticBinary(self):
    module = _module(kind=module_graph.BINARY, arch='arm', cfi=True)
    module.static_executable = True
    flags = _get_flags(module)
    self.assertNotIn('-fsanitize-cfi-cross-dso', flags.get_cflags())
    self.assertNotIn('-fsanitize-cfi-cross-dso', flags.get_ldflags())
    self.assertEqual('thumb', flags.required_instruction_set)

  def testFuzzer(self):
    flags = _get_flags(_module(fuzzer=True),
                       flags=sanitizer_flags.Flags(cflags=['-flto'],
                                                   ldflags=['-flto']))
    cflags = flags.get_cflags()
    self.assertNotIn('-flto', cflags)
    self.assertNotIn('-flto', flags.get_ldflags())
    self.assertIn('-fno-lto', cflags)
    self.assertIn('-U_FORTIFY_SOURCE', cflags)
    self.assertIn('-fno-sanitize-trap=all', cflags)
    self.assertIn('-fno-sanitize-recover=all', cflags)
    self.assertIn(r'-Wl,-rpath,\$$ORIGIN', flags.get_ldflags())

  def testIntegerOverflowMinimalRuntime(self):
    flags = _get_flags(_module(integer_overflow=True))
    cflags = flags.get_cflags()
    self.assertIn('-fsanitize=unsigned-integer-overflow,'
                  'signed-integer-overflow', cflags)
    for flag in ('-fsanitize-minimal-runtime',
                 '-fno-sanitize-trap=integer,undefined',
                 '-fno-sanitize-recover=integer,undefined',
                 '-fno-sanitize=implicit-integer-sign-change',
                 '-fno-sanitize=unsigned-shift-base'):
      self.assertIn(flag, cflags)
    self.assertIn('-fsanitize-blacklist=build/soong/cc/config/'
                  'integer_overflow_blocklist.txt', cflags)

  def testExplicitSignChangeCheckKept(self):
    flags = _get_flags(_module(
        misc_undefined=['implicit-integer-sign-change']))
    self.assertNotIn('-fno-sanitize=implicit-integer-sign-change',
                     flags.get_cflags())
    self.assertIn('-fno-sanitize=unsigned-shift-base', flags.get_cflags())

  def testRecoverLists(self):
    flags = _get_flags(_module(
        integer_overflow=True, recover=['signed-integer-overflow'],
        diag=module_graph.DiagProperties(
            integer_overflow=True, no_recover=['bounds'])))
    cflags = flags.get_cflags()
    self.assertIn('-fsanitize-recover=signed-integer-overflow', cflags)
    self.assertIn('-fno-sanitize-recover=bounds', cflags)
    self.assertIn('-fno-sanitize-trap=unsigned-integer-overflow,'
                  'signed-integer-overflow', cflags)
    self.assertNotIn('-fsanitize-minimal-runtime', cflags)

  def testBlocklist(self):
    session = build_session.BuildSession(build_options.GlobalPolicy())
    flags = _get_flags(_module(cfi=True, blocklist='cfi_blocklist.txt'),
                       session)
    self.assertIn('-fsanitize-blacklist=system/foo/cfi_blocklist.txt',
                  flags.get_cflags())
    self.assertEqual(['system/foo/cfi_blocklist.txt'],
                     flags.get_cflags_deps())
    self.assertEqual(['system/foo/cfi_blocklist.txt'],
                     session.path_resolver.get_inputs())

  def testMemtagStack(self):
    flags = _get_flags(_module(memtag_stack=True))
    self.assertIn('-march=armv8-a+memtag', flags.get_cflags())
    self.assertIn('-Wl,--no-fatal-warnings', flags.get_ldflags())
    # memtag is not part of -fsanitize.
    self.assertFalse(any(f.startswith('-fsanitize=')
                         for f in flags.get_cflags()))


if __name__ == '__main__':
  unittest.main()
