# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""State owned by one full run of the sanitizer passes.

One BuildSession is created per run and passed explicitly to every pass.
It owns:
 1) The per-sanitizer lists of statically linked modules built in a
    sanitized variation (see static_libs_report.py).
 2) The snapshot registry, mapping runtime library names to the names of
    snapshot-provided replacements.
 3) The path resolver, which verifies blocklist files and records them as
    build inputs.
"""

import logging
import os

from sanitizer_variants import sanitizer_types
from sanitizer_variants import static_libs_report


class PathResolver(object):
  """Resolves module-relative paths and records them as build inputs.

  Errors are kept in |errors| instead of being raised; they belong to the
  caller that owns path resolution, not to the sanitizer passes.
  """

  def __init__(self, source_root=None):
    self._source_root = source_root
    self._inputs = set()
    self.errors = []

  def resolve(self, module, path):
    """Returns the path of |path| relative to the source root, or None."""
    if not path:
      return None
    resolved = os.path.normpath(os.path.join(module.module_dir, path))
    if self._source_root is not None and not os.path.isfile(
        os.path.join(self._source_root, resolved)):
      message = '%s: blocklist %s not found' % (module.name, resolved)
      logging.error(message)
      self.errors.append(message)
      return None
    self._inputs.add(resolved)
    return resolved

  def get_inputs(self):
    return sorted(self._inputs)


class SnapshotRegistry(object):
  """Maps library names to the snapshot prebuilts that replace them."""

  def __init__(self, static_libs=None, shared_libs=None):
    self.static_libs = dict(static_libs or {})
    self.shared_libs = dict(shared_libs or {})

  def get_static(self, name):
    return self.static_libs.get(name, name)

  def get_shared(self, name):
    return self.shared_libs.get(name, name)


class BuildSession(object):
  def __init__(self, policy, snapshots=None, path_resolver=None):
    self.policy = policy
    self.snapshots = snapshots or SnapshotRegistry()
    self.path_resolver = path_resolver or PathResolver()
    self._static_libs = dict(
        (t, static_libs_report.SanitizerStaticLibsMap(t))
        for t in sanitizer_types.get_variation_sanitizers())

  def get_static_libs(self, sanitizer):
    try:
      return self._static_libs[sanitizer]
    except KeyError:
      raise sanitizer_types.SanitizerConsistencyError(
          '%s does not create variations' % sanitizer.variation_name)

  def get_all_static_libs(self):
    return [self._static_libs[t]
            for t in sanitizer_types.get_variation_sanitizers()]
