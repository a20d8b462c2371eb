# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Runs independent per-module tasks, optionally on worker threads."""

import concurrent.futures
import logging
import time


class SynchronousExecutor(object):
  """An executor with the concurrent.futures interface that runs in place.

  Used for -j0, which makes failures much easier to diagnose.
  """

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc_value, traceback):
    return False

  def submit(self, function, *args):
    future = concurrent.futures.Future()
    try:
      future.set_result(function(*args))
    except Exception as e:
      future.set_exception(e)
    return future


def create_executor(maximum_jobs):
  """Returns a synchronous executor for 0, or a thread pool otherwise.

  None lets the thread pool pick its default size.
  """
  if maximum_jobs == 0:
    return SynchronousExecutor()
  return concurrent.futures.ThreadPoolExecutor(max_workers=maximum_jobs)


def run_in_order(function, task_list, maximum_jobs=0):
  """Runs function(*task) for each task in |task_list|.

  Returns the results in the order of |task_list|, regardless of the order
  in which the tasks complete. The first exception raised by a task is
  re-raised after the remaining tasks are cancelled.
  """
  start_time = time.time()
  with create_executor(maximum_jobs) as executor:
    futures = [executor.submit(function, *task) for task in task_list]
    results = []
    for index, future in enumerate(futures):
      try:
        results.append(future.result())
      except Exception:
        for pending in futures[index + 1:]:
          pending.cancel()
        raise
  elapsed_time = time.time() - start_time
  if elapsed_time > 1:
    logging.info('Slow task: %s.%s %0.3fs',
                 function.__module__, function.__name__, elapsed_time)
  return results
