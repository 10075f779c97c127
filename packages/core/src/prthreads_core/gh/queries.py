"""GraphQL documents sent through ``gh api graphql``.

Each paginated query takes ``$owner``, ``$repo``, ``$number`` and an optional
``$after`` cursor and returns one connection under ``pullRequest``.
"""

from __future__ import annotations

from dataclasses import dataclass

THREADS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id isResolved isOutdated path line
          comments(first: 50) {
            totalCount
            pageInfo { hasNextPage endCursor }
            nodes {
              id body author { login } url createdAt path line
              reactionGroups { content viewerHasReacted reactors { totalCount } }
            }
          }
        }
      }
    }
  }
}
"""

FILES_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      files(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes { path additions deletions changeType }
      }
    }
  }
}
"""

REVIEWS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviews(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes { author { login } body url state }
      }
    }
  }
}
"""

COMMENTS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      comments(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes { id body author { login } url createdAt }
      }
    }
  }
}
"""

META_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      number title state isDraft mergeable additions deletions
      author { login }
    }
  }
}
"""

THREAD_COMMENTS_QUERY = """
query($threadId: ID!, $after: String) {
  node(id: $threadId) {
    ... on PullRequestReviewThread {
      comments(first: 100, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id body author { login } url createdAt path line
          reactionGroups { content viewerHasReacted reactors { totalCount } }
        }
      }
    }
  }
}
"""

REPLY_MUTATION = """
mutation($threadId: ID!, $body: String!) {
  addPullRequestReviewThreadReply(input: { pullRequestReviewThreadId: $threadId, body: $body }) {
    comment { id url }
  }
}
"""

RESOLVE_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: { threadId: $threadId }) {
    thread { isResolved }
  }
}
"""

ADD_REACTION_MUTATION = """
mutation($subjectId: ID!, $content: ReactionContent!) {
  addReaction(input: { subjectId: $subjectId, content: $content }) {
    reaction { id content }
  }
}
"""


@dataclass(frozen=True)
class QueryType:
    """A paginated PR query: its cache key, document, and connection field."""

    name: str
    query: str
    connection: str


THREADS = QueryType("threads", THREADS_QUERY, "reviewThreads")
FILES = QueryType("files", FILES_QUERY, "files")
REVIEWS = QueryType("reviews", REVIEWS_QUERY, "reviews")
COMMENTS = QueryType("comments", COMMENTS_QUERY, "comments")

QUERY_TYPES = (THREADS, FILES, REVIEWS, COMMENTS)
