# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Unittest for build_options.py."""

import unittest

from sanitizer_variants import build_options


class GlobalPolicyUnittest(unittest.TestCase):
  def testDefaults(self):
    policy = build_options.GlobalPolicy()
    self.assertEqual([], policy.sanitize_device())
    self.assertTrue(policy.enable_cfi())
    self.assertFalse(policy.disable_scudo())
    self.assertFalse(policy.is_cfi_enabled_for_path('external/foo'))

  def testUnknownOption(self):
    with self.assertRaises(TypeError):
      build_options.GlobalPolicy(sanitize_target=['address'])
    with self.assertRaises(AttributeError):
      build_options.GlobalPolicy().sanitize_target()

  def testParse(self):
    policy = build_options.GlobalPolicy.parse([
        '--sanitize-device', 'address, cfi',
        '--sanitize-device-arch', 'arm64',
        '--cfi-include-paths', 'external/a external/b',
        '--disable-scudo'])
    self.assertEqual(['address', 'cfi'], policy.sanitize_device())
    self.assertEqual(['arm64'], policy.sanitize_device_arch())
    self.assertTrue(policy.disable_scudo())
    self.assertTrue(policy.enable_cfi())
    self.assertTrue(policy.is_cfi_enabled_for_path('external/b/src'))
    self.assertFalse(policy.is_cfi_enabled_for_path('system/core'))

  def testDisableCfi(self):
    policy = build_options.GlobalPolicy.parse(['--disable-cfi'])
    self.assertFalse(policy.enable_cfi())

  def testPathPredicates(self):
    policy = build_options.GlobalPolicy(
        integer_overflow_include_paths=['system/core'],
        integer_overflow_exclude_paths=['system/core/libcutils'],
        bound_sanitizer_include_paths=['bionic'],
        memtag_heap_sync_include_paths=['system/bin'],
        memtag_heap_exclude_paths=['vendor'])
    self.assertTrue(
        policy.is_integer_overflow_enabled_for_path('system/core/init'))
    self.assertTrue(
        policy.is_integer_overflow_disabled_for_path('system/core/libcutils'))
    self.assertTrue(policy.is_bound_sanitizer_enabled_for_path('bionic/libc'))
    self.assertFalse(policy.is_bound_sanitizer_disabled_for_path('bionic'))
    self.assertTrue(policy.is_memtag_heap_sync_enabled_for_path('system/bin'))
    self.assertFalse(
        policy.is_memtag_heap_async_enabled_for_path('system/bin'))
    self.assertTrue(policy.is_memtag_heap_disabled_for_path('vendor/x'))

  def testListsAreCopied(self):
    names = ['address']
    policy = build_options.GlobalPolicy(sanitize_host=names)
    names.append('thread')
    self.assertEqual(['address'], policy.sanitize_host())


if __name__ == '__main__':
  unittest.main()
