# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Loads already-parsed module records from a JSON description.

The description looks like:

  {
    "modules": [
      {"name": "libfoo", "kind": "static", "arch": "arm64",
       "module_dir": "external/foo",
       "sanitize": {"cfi": true, "diag": {"cfi": true}},
       "deps": [{"kind": "static", "target": "libbar"}]},
      ...
    ],
    "snapshots": {"static": {"libc++": "libc++.vendor_snapshot"},
                  "shared": {}}
  }

Modules may carry an "id" when the same name exists for several arches;
edge targets refer to the id, which defaults to the name.
"""

import json

from sanitizer_variants import build_session
from sanitizer_variants import module_graph
from sanitizer_variants import toolchain

_MODULE_KEYS = frozenset([
    'name', 'kind', 'os', 'arch', 'static_executable', 'test_binary',
    'use_sdk', 'module_dir', 'image', 'role', 'vndk', 'use_vndk',
    'vendor_proprietary', 'prebuilt', 'exported_to_make', 'enabled',
    'bootstrap', 'apex_sanitizers', 'snapshot_sanitizers',
    'sanitize_minimal_dep', 'sanitize_ubsan_dep', 'base_name'])
_SANITIZE_KEYS = frozenset([
    'never', 'address', 'thread', 'hwaddress', 'all_undefined', 'undefined',
    'misc_undefined', 'fuzzer', 'safestack', 'cfi', 'integer_overflow',
    'scudo', 'scs', 'memtag_heap', 'memtag_stack', 'writeonly',
    'cfi_assembly_support', 'recover', 'blocklist'])
_DIAG_KEYS = frozenset([
    'undefined', 'cfi', 'integer_overflow', 'memtag_heap', 'misc_undefined',
    'no_recover'])


def _check_keys(what, record, allowed):
  unknown = set(record) - allowed
  if unknown:
    raise module_graph.GraphError(
        '%s: unknown keys %s' % (what, ', '.join(sorted(unknown))))


def _load_sanitize(name, record):
  if record is None:
    return None
  record = dict(record)
  diag = record.pop('diag', None) or {}
  _check_keys('%s: sanitize' % name, record, _SANITIZE_KEYS)
  _check_keys('%s: sanitize.diag' % name, diag, _DIAG_KEYS)
  return module_graph.SanitizePolicy(
      diag=module_graph.DiagProperties(**diag), **record)


def _load_module(record):
  record = dict(record)
  module_id = record.pop('id', None)
  deps = record.pop('deps', [])
  sanitize = record.pop('sanitize', None)
  if 'name' not in record or 'kind' not in record:
    raise module_graph.GraphError('module without name or kind: %r' % record)
  _check_keys(record['name'], record, _MODULE_KEYS)
  # The "config" block is flattened, e.g. "config": {"cfi_assembly_support":
  # true}.
  if sanitize is not None and 'config' in sanitize:
    sanitize = dict(sanitize)
    sanitize.update(sanitize.pop('config'))
  try:
    module = module_graph.Module(
        sanitize=_load_sanitize(record['name'], sanitize), **record)
  except toolchain.ToolchainError as e:
    raise module_graph.GraphError('%s: %s' % (record['name'], e))
  return module_id or module.name, module, deps


def load_graph(data):
  """Returns (ModuleGraph, SnapshotRegistry) for a decoded description."""
  graph = module_graph.ModuleGraph()
  by_id = {}
  pending = []
  for record in data.get('modules', []):
    module_id, module, deps = _load_module(record)
    if module_id in by_id:
      raise module_graph.GraphError('duplicate module id %s' % module_id)
    by_id[module_id] = module
    graph.add_module(module)
    pending.append((module, deps))

  for module, deps in pending:
    for dep in deps:
      target = by_id.get(dep.get('target'))
      if target is None:
        raise module_graph.GraphError('%s: unknown dependency %s' % (
            module.name, dep.get('target')))
      module.add_dependency(dep.get('kind', module_graph.STATIC_DEP), target)

  snapshots = data.get('snapshots', {})
  registry = build_session.SnapshotRegistry(
      static_libs=snapshots.get('static'), shared_libs=snapshots.get('shared'))
  return graph, registry


def load_graph_file(path):
  with open(path) as f:
    try:
      data = json.load(f)
    except ValueError as e:
      raise module_graph.GraphError('%s: %s' % (path, e))
  return load_graph(data)
