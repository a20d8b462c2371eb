# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Unittest for static_libs_report.py."""

import io
import unittest

from sanitizer_variants import build_options
from sanitizer_variants import build_session
from sanitizer_variants import module_graph
from sanitizer_variants import sanitizer_types
from sanitizer_variants import static_libs_report


def _module(name, kind=module_graph.STATIC_LIBRARY, arch='arm64',
            image=None, **sanitize):
  return module_graph.Module(name, kind, arch=arch, image=image,
                             sanitize=module_graph.SanitizePolicy(**sanitize))


class SanitizerStaticLibsMapUnittest(unittest.TestCase):
  def testExportToMake(self):
    libs = static_libs_report.SanitizerStaticLibsMap(sanitizer_types.CFI)
    libs.add(_module('libz'), 'libz')
    libs.add(_module('liba'), 'liba')
    libs.add(_module('libv', image=module_graph.VENDOR_IMAGE), 'libv')
    libs.add(_module('libarm', arch='arm'), 'libarm')
    self.assertEqual(['liba', 'libz'], libs.get('core', 'arm64'))
    self.assertEqual([], libs.get('product', 'arm64'))
    self.assertEqual([
        ('SOONG_cfi_core_arm_STATIC_LIBRARIES', 'libarm'),
        ('SOONG_cfi_core_arm64_STATIC_LIBRARIES', 'liba libz'),
        ('SOONG_cfi_vendor_arm64_STATIC_LIBRARIES', 'libv'),
    ], libs.export_to_make())

  def testWriteMakeVars(self):
    session = build_session.BuildSession(build_options.GlobalPolicy())
    session.get_static_libs(sanitizer_types.HWASAN).add(
        _module('libfoo'), 'libfoo')
    session.get_static_libs(sanitizer_types.ASAN).add(
        _module('libbar'), 'libbar')
    output = io.StringIO()
    static_libs_report.write_make_vars(output, session)
    lines = output.getvalue().splitlines()
    self.assertTrue(lines[0].startswith('# '))
    # Variables follow the processing order of the sanitizers.
    self.assertEqual([
        'SOONG_asan_core_arm64_STATIC_LIBRARIES = libbar',
        'SOONG_hwasan_core_arm64_STATIC_LIBRARIES = libfoo',
    ], lines[1:])


class MakeNameUnittest(unittest.TestCase):
  def testSubName(self):
    self.assertEqual('', static_libs_report.get_sub_name(_module('libfoo')))
    self.assertEqual('.cfi', static_libs_report.get_sub_name(
        _module('libfoo', cfi=True)))
    self.assertEqual('.cfi.hwasan.scs', static_libs_report.get_sub_name(
        _module('libfoo', cfi=True, hwaddress=True, scs=True)))
    self.assertEqual('.hwasan', static_libs_report.get_sub_name(
        _module('libfoo', module_graph.HEADER_LIBRARY, hwaddress=True)))
    # Only the static forms need distinct names.
    self.assertEqual('', static_libs_report.get_sub_name(
        _module('libfoo', module_graph.SHARED_LIBRARY, cfi=True)))
    self.assertEqual('', static_libs_report.get_sub_name(
        _module('libfoo', address=True, thread=True)))

  def testMakeName(self):
    self.assertEqual('libfoo.scs', static_libs_report.get_make_name(
        _module('libfoo', scs=True)))
    module = module_graph.Module('libfoo', module_graph.STATIC_LIBRARY)
    self.assertEqual('libfoo', static_libs_report.get_make_name(module))


if __name__ == '__main__':
  unittest.main()
