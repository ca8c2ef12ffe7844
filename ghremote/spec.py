REPOSPEC = "<REPOSPEC>"
"""A concise reference to a repository hosted on GitHub.

REPOSPEC has the form ``[owner/]repo[/subdir][@ref|#pull|@*]``:

* ``owner`` is the user or organization that owns the repository. If it is
  omitted, the configured default username is used (deprecated).
* ``subdir`` is a path within the repository, and may contain further '/'.
* ``@ref`` selects a commit, tag or branch name.
* ``#pull`` selects the head branch of a pull request, including pull
  requests from forks.
* ``@*`` selects the tag of the latest release.

If no selector is given, the 'master' branch is used.

Path segments cannot be empty or contain whitespace, '@' or '#'.
"""
