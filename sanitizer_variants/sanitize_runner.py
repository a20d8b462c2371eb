# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Runs the sanitizer passes over a module graph in their fixed order.

  1) Policy resolution of every module. All configuration errors are
     collected and reported together before the graph is touched.
  2) Variation splitting, one sanitizer at a time (variant_transition.py).
  3) -fsanitize= list computation.
  4) Runtime dependency propagation and injection (runtime_deps.py).
  5) Flag synthesis (sanitizer_flags.py).
"""

import argparse
import logging
import sys

from sanitizer_variants import build_options
from sanitizer_variants import build_session
from sanitizer_variants import graph_loader
from sanitizer_variants import module_graph
from sanitizer_variants import policy_resolver
from sanitizer_variants import runtime_deps
from sanitizer_variants import sanitizer_flags
from sanitizer_variants import static_libs_report
from sanitizer_variants import variant_transition
from sanitizer_variants.util import concurrent_util
from sanitizer_variants.util import logging_util


class BuildConfigurationError(Exception):
  """Raised when one or more modules have configuration errors."""

  def __init__(self, errors):
    super(BuildConfigurationError, self).__init__(
        '%d sanitizer configuration error(s):\n%s' % (
            len(errors), '\n'.join(str(e) for e in errors)))
    self.errors = errors


def _resolve_module(module, policy):
  try:
    policy_resolver.resolve(module, policy)
  except policy_resolver.ConfigurationError as e:
    return e
  return None


def resolve_policies(graph, session, maximum_jobs=0):
  """Resolves the sanitize properties of every module of |graph|."""
  results = concurrent_util.run_in_order(
      _resolve_module,
      [(module, session.policy) for module in graph.modules()],
      maximum_jobs)
  errors = [e for e in results if e is not None]
  for e in errors:
    logging.error('%s', e)
  if errors:
    raise BuildConfigurationError(errors)


def run(graph, session, maximum_jobs=0):
  """Runs every pass over |graph|, which is rewritten in place."""
  logging.info('Resolving sanitizer properties of %d modules',
               len(graph.modules()))
  resolve_policies(graph, session, maximum_jobs)

  variant_transition.split_graph(graph, session, maximum_jobs)

  sanitized = [m for m in graph.modules() if m.sanitize is not None]
  for module in sanitized:
    sanitizer_flags.compute_sanitizer_lists(module)

  logging.info('Adding sanitizer runtime dependencies')
  runtime_deps.propagate_runtime_deps(graph)
  for module in sanitized:
    runtime_deps.add_runtime_deps(module, session)

  logging.info('Computing sanitizer flags')
  for module in sanitized:
    module.flags = sanitizer_flags.get_flags(module, session)
  return graph


def dump(graph, output):
  """Prints the variations, flags and runtime deps of every module."""
  for module in graph.modules():
    line = static_libs_report.get_make_name(module)
    if module.variant_name() != module.name:
      line += ' (%s)' % module.variant_name()
    if module.hide_from_make:
      line += ' [hidden]'
    output.write(line + '\n')
    for edge in module.deps:
      output.write('  dep %s: %s\n' % (edge.kind, edge.target.variant_name()))
    for dep in module.runtime_deps:
      output.write('  runtime %s: %s\n' % (dep.kind, dep.name))
    if module.flags is None:
      continue
    for key in ('cflags', 'asflags', 'ldflags'):
      values = module.flags.to_dict()[key]
      if values:
        output.write('  %s: %s\n' % (key, logging_util.format_flags(values)))
    if module.flags.dynamic_linker:
      output.write('  dynamic_linker: %s\n' % module.flags.dynamic_linker)


def _parse_args(args):
  parser = argparse.ArgumentParser(
      description='Splits a module graph into sanitizer variations.')
  parser.add_argument('--graph', required=True, metavar='<file>',
                      help='JSON description of the modules and their '
                      'dependencies.')
  parser.add_argument('--jobs', '-j', type=int, default=0,
                      help='Worker threads for per-module passes. 0 runs '
                      'them synchronously.')
  parser.add_argument('--make-vars', metavar='<file>',
                      help='Writes the static library lists to this file.')
  parser.add_argument('--source-root', metavar='<dir>',
                      help='Verifies that blocklist files exist under this '
                      'directory.')
  parser.add_argument('--dump', action='store_true',
                      help='Prints the resulting modules to stdout.')
  parser.add_argument('--verbose', '-v', action='count', default=0)
  build_options.GlobalPolicy.add_arguments(parser)
  return parser.parse_args(args)


def main(args=None):
  args = _parse_args(args)
  logging_util.setup(level=logging_util.get_level(args.verbose))
  policy = build_options.GlobalPolicy.from_args(args)

  try:
    graph, snapshots = graph_loader.load_graph_file(args.graph)
    session = build_session.BuildSession(
        policy, snapshots, build_session.PathResolver(args.source_root))
    run(graph, session, args.jobs)
  except (BuildConfigurationError, module_graph.GraphError) as e:
    logging.error('%s', e)
    return 1

  if args.make_vars:
    with open(args.make_vars, 'w') as f:
      static_libs_report.write_make_vars(f, session)
  if args.dump:
    dump(graph, sys.stdout)
  if session.path_resolver.errors:
    return 1
  return 0


if __name__ == '__main__':
  sys.exit(main())
