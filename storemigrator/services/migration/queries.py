"""GraphQL documents sent to the target store's Admin API."""

METAFIELD_DEFINITIONS_QUERY = """
query MetafieldDefinitions($ownerType: MetafieldOwnerType!, $first: Int!, $cursor: String) {
  metafieldDefinitions(first: $first, ownerType: $ownerType, after: $cursor) {
    nodes {
      namespace
      key
      type { name }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

METAFIELD_DEFINITION_CREATE = """
mutation MetafieldDefinitionCreate($definition: MetafieldDefinitionInput!) {
  metafieldDefinitionCreate(definition: $definition) {
    createdDefinition {
      id
      namespace
      key
      type { name }
    }
    userErrors { code field message }
  }
}
"""

PRODUCT_BY_HANDLE_QUERY = """
query ProductByHandle($handle: String!) {
  productByIdentifier(identifier: {handle: $handle}) {
    id
    handle
  }
}
"""

PRODUCT_SET_MUTATION = """
mutation ProductSet($productSet: ProductSetInput!, $synchronous: Boolean!) {
  productSet(synchronous: $synchronous, input: $productSet) {
    product { id }
    productSetOperation {
      id
      status
      userErrors { code field message }
    }
    userErrors { code field message }
  }
}
"""

PUBLISHABLE_PUBLISH_MUTATION = """
mutation PublishablePublish($id: ID!, $input: [PublicationInput!]!) {
  publishablePublish(id: $id, input: $input) {
    publishable {
      ... on Product { id }
    }
    userErrors { field message }
  }
}
"""

COLLECTIONS_QUERY = """
query Collections($first: Int!, $cursor: String) {
  collections(first: $first, after: $cursor) {
    nodes { id handle }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PUBLICATIONS_QUERY = """
query Publications($first: Int!, $cursor: String) {
  publications(first: $first, after: $cursor) {
    nodes {
      id
      catalog { id title }
      app { id title handle }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

LOCATIONS_QUERY = """
query Locations($first: Int!, $cursor: String) {
  locations(first: $first, after: $cursor) {
    nodes { id name }
    pageInfo { hasNextPage endCursor }
  }
}
"""
