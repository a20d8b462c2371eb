# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Unittest for graph_loader.py."""

import os
import shutil
import tempfile
import unittest

from sanitizer_variants import graph_loader
from sanitizer_variants import module_graph


class GraphLoaderUnittest(unittest.TestCase):
  def testLoad(self):
    graph, snapshots = graph_loader.load_graph({
        'modules': [
            {'name': 'libbar', 'kind': 'shared', 'module_dir': 'external/bar',
             'sanitize': {'cfi': True, 'diag': {'cfi': True},
                          'config': {'cfi_assembly_support': True}}},
            {'name': 'libfoo', 'kind': 'static', 'image': 'vendor'},
            {'name': 'bin', 'kind': 'binary', 'sanitize': {},
             'deps': [{'target': 'libfoo'},
                      {'kind': 'shared', 'target': 'libbar'}]},
        ],
        'snapshots': {'static': {'libc++': 'libc++.vendor_snapshot'}},
    })
    libbar, libfoo, binary = graph.modules()
    self.assertIs(True, libbar.sanitize.cfi)
    self.assertIs(True, libbar.sanitize.diag.cfi)
    self.assertIs(True, libbar.sanitize.cfi_assembly_support)
    self.assertEqual('external/bar', libbar.module_dir)
    self.assertIsNone(libfoo.sanitize)
    self.assertTrue(libfoo.in_vendor())
    self.assertEqual([(module_graph.STATIC_DEP, libfoo),
                      (module_graph.SHARED_DEP, libbar)],
                     [(e.kind, e.target) for e in binary.deps])
    self.assertEqual('libc++.vendor_snapshot',
                     snapshots.get_static('libc++'))
    self.assertEqual('libc++', snapshots.get_shared('libc++'))

  def testIds(self):
    graph, _ = graph_loader.load_graph({'modules': [
        {'id': 'libfoo_arm', 'name': 'libfoo', 'kind': 'static',
         'arch': 'arm'},
        {'id': 'libfoo_arm64', 'name': 'libfoo', 'kind': 'static'},
        {'name': 'bin', 'kind': 'binary', 'arch': 'arm',
         'deps': [{'target': 'libfoo_arm'}]},
    ]})
    self.assertEqual('arm', graph.modules()[2].deps[0].target.arch)

  def testErrors(self):
    for data in (
        {'modules': [{'name': 'libfoo'}]},
        {'modules': [{'name': 'libfoo', 'kind': 'object'}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static', 'color': 'red'}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static',
                      'sanitize': {'memory': True}}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static',
                      'sanitize': {'diag': {'address': True}}}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static', 'os': 'fuchsia'}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static'},
                     {'name': 'libfoo', 'kind': 'shared'}]},
        {'modules': [{'name': 'bin', 'kind': 'binary',
                      'deps': [{'target': 'libmissing'}]}]},
        {'modules': [{'name': 'libfoo', 'kind': 'static'},
                     {'name': 'bin', 'kind': 'binary',
                      'deps': [{'kind': 'runtime', 'target': 'libfoo'}]}]}):
      with self.assertRaises(module_graph.GraphError):
        graph_loader.load_graph(data)

  def testLoadFile(self):
    tmpdir = tempfile.mkdtemp()
    try:
      path = os.path.join(tmpdir, 'graph.json')
      with open(path, 'w') as f:
        f.write('{"modules": [{"name": "libfoo", "kind": "static"}]}')
      graph, _ = graph_loader.load_graph_file(path)
      self.assertEqual(['libfoo'], [m.name for m in graph.modules()])

      with open(path, 'w') as f:
        f.write('{"modules": [')
      with self.assertRaises(module_graph.GraphError):
        graph_loader.load_graph_file(path)
    finally:
      shutil.rmtree(tmpdir)


if __name__ == '__main__':
  unittest.main()
